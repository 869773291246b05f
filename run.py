import os
import logging
from dotenv import load_dotenv

from config import load_config
from dep_parser import DependencyParser

logger = logging.getLogger(__name__)


def main():
  logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
  )

  load_dotenv()
  data_path = os.getenv("DATA_PATH", ".")
  train_file = os.getenv("TRAIN_FILE", "train.conll")
  dev_file = os.getenv("DEV_FILE") or None
  test_file = os.getenv("TEST_FILE", "test.conll")
  model_file = os.getenv("MODEL_FILE", "results/model.txt.gz")
  embed_file = os.getenv("EMBED_FILE") or None
  out_file = os.getenv("OUTPUT_FILE") or None
  skip_training = os.getenv("SKIP_TRAINING", "").lower() in ("1", "true", "yes")

  config = load_config()
  logger.info("data path: %s | config: %s", data_path, config)

  if skip_training:
    parser = DependencyParser.load(model_file, config)
  else:
    parser = DependencyParser(config)
    parser.train_files(train_file, dev_file, model_file, embed_file)

  result = parser.test(test_file, out_file)

  logger.info("=" * 60)
  logger.info("test summary:")
  for name, value in result.items():
    logger.info("  %s: %.2f%%", name, value * 100.0)
  logger.info("=" * 60)


if __name__ == "__main__":
  main()
