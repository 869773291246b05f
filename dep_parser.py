import logging
from typing import Dict, List, Optional, Sequence
import numpy as np
import jax

from config import ParserConfig, check_dictionary
from schema import Sentence, DependencyTree, Dictionary
from engine import ArcStandard
from features import N_FEATURES
from oracle import generate_examples
from parser_model import ParserModel
from scorer import Scorer
from trainer import Trainer
from inference import parse_sentence, parse_sentences, evaluate
from model_io import write_model_file, load_model_file
from data_loader import (
  load_conll_data,
  write_conll_data,
  build_dictionary,
  load_embeddings,
  log_tree_stats,
)

logger = logging.getLogger(__name__)


class ParserStateError(RuntimeError):
  """the parser is used before a model was trained/loaded and initialized."""


class DependencyParser:
  """
  transition-based dependency parser driven by a feed-forward classifier
  (Chen & Manning, 2014).

  lifecycle: train(...) or load(...) provides a dictionary and parameters,
  initialize() builds the transition system and the precomputation cache,
  after which predict(...) can be called.
  """

  def __init__(self, config: Optional[ParserConfig] = None):
    self.config = config or ParserConfig()
    if self.config.n_features != N_FEATURES:
      raise ValueError(
        f"the feature template has {N_FEATURES} slots, "
        f"config asks for {self.config.n_features}"
      )
    self.dictionary: Optional[Dictionary] = None
    self.scorer: Optional[Scorer] = None
    self.system: Optional[ArcStandard] = None

  @property
  def is_ready(self) -> bool:
    return self.system is not None

  def _make_system(self) -> ArcStandard:
    # the NULL sentinel is not a transition label
    return ArcStandard(self.dictionary.known_labels[1:], self.config.single_root)

  def _init_embeddings(self, embed_file: Optional[str]) -> None:
    """copies pretrained vectors into word rows: exact match, then lowercase."""
    embed_ids, vectors = load_embeddings(embed_file)
    if vectors is None:
      return
    if vectors.ndim != 2 or vectors.shape[1] != self.config.embed_size:
      logger.warning(
        "embedding dimension mismatch: file has %s, configured %d; "
        "using random vectors",
        vectors.shape[1] if vectors.ndim == 2 else 0,
        self.config.embed_size,
      )
      return

    rows, sources = [], []
    for i, word in enumerate(self.dictionary.known_words):
      index = embed_ids.get(word)
      if index is None:
        index = embed_ids.get(word.lower())
      if index is not None:
        rows.append(i)
        sources.append(index)
    self.scorer.set_embeddings(rows, vectors[np.asarray(sources, dtype=np.int64)])
    logger.info(
      "found embeddings: %d / %d", len(rows), len(self.dictionary.known_words)
    )

  def train(
    self,
    train_sents: Sequence[Sentence],
    train_trees: Sequence[DependencyTree],
    dev_sents: Optional[Sequence[Sentence]] = None,
    dev_trees: Optional[Sequence[DependencyTree]] = None,
    embed_file: Optional[str] = None,
    model_file: Optional[str] = None,
  ) -> None:
    """trains a new model from scratch, discarding any loaded one."""
    self.dictionary = self.scorer = self.system = None
    config = self.config

    log_tree_stats("train", train_trees)
    if dev_trees:
      log_tree_stats("dev", dev_trees)

    dictionary = build_dictionary(train_sents, train_trees, config.word_cutoff)
    check_dictionary(dictionary)
    self.dictionary = dictionary
    system = self._make_system()

    model = ParserModel(
      vocab_size=dictionary.size,
      n_features=config.n_features,
      embed_size=config.embed_size,
      hidden_size=config.hidden_size,
      n_classes=system.n_transitions,
      init_range=config.init_range,
    )
    self.scorer = Scorer.create(model, jax.random.PRNGKey(config.seed))
    self._init_embeddings(embed_file)

    logger.info("generating training examples...")
    dataset, pre_computed = generate_examples(
      train_sents, train_trees, system, dictionary, config.n_pre_computed
    )
    self.scorer.pre_computed = pre_computed

    trainer = Trainer(self.scorer, config, system, dictionary)
    trainer.train(dataset, dev_sents, dev_trees)

    if model_file is not None:
      self.save(model_file)
    self.initialize()

  def train_files(
    self,
    train_file: str,
    dev_file: Optional[str] = None,
    model_file: Optional[str] = None,
    embed_file: Optional[str] = None,
  ) -> None:
    logger.info(
      "train file: %s | dev file: %s | model file: %s | embedding file: %s",
      train_file,
      dev_file,
      model_file,
      embed_file,
    )
    train_sents, train_trees = load_conll_data(train_file)
    dev_sents, dev_trees = None, None
    if dev_file is not None:
      dev_sents, dev_trees = load_conll_data(dev_file)
    self.train(
      train_sents, train_trees, dev_sents, dev_trees, embed_file, model_file
    )

  def save(self, model_file: str) -> None:
    if self.scorer is None:
      raise ParserStateError("no model to save; train or load one first")
    write_model_file(
      model_file, self.dictionary, self.scorer, self.scorer.pre_computed
    )

  def load_model_file(self, model_file: str) -> None:
    """reads dictionary and parameters; call initialize() before predicting."""
    self.dictionary, self.scorer, self.config = load_model_file(
      model_file, self.config
    )
    self.system = None

  @classmethod
  def load(
    cls, model_file: str, config: Optional[ParserConfig] = None
  ) -> "DependencyParser":
    parser = cls(config)
    parser.load_model_file(model_file)
    parser.initialize()
    return parser

  def initialize(self) -> None:
    """prepares for parsing after a model has been loaded or trained."""
    if self.dictionary is None or self.scorer is None:
      raise ParserStateError("model has not been loaded or trained")
    self.system = self._make_system()
    if self.system.n_transitions != self.scorer.n_classes:
      raise ParserStateError(
        f"model scores {self.scorer.n_classes} transitions, "
        f"dictionary defines {self.system.n_transitions}"
      )
    if self.config.n_pre_computed > 0:
      self.scorer.precompute()

  def _check_ready(self) -> None:
    if self.system is None:
      raise ParserStateError(
        "parser has not been properly initialized; "
        "first load or train a model and call initialize()"
      )

  @staticmethod
  def _check_sentence(sentence: Sentence) -> None:
    if len(sentence.words) != len(sentence.pos):
      raise ValueError(
        f"sentence has {len(sentence.words)} words but {len(sentence.pos)} tags"
      )
    for word, tag in zip(sentence.words, sentence.pos):
      if not tag:
        raise ValueError(f"parser requires POS tags; token {word!r} has none")

  def predict(self, sentence: Sentence) -> DependencyTree:
    self._check_ready()
    self._check_sentence(sentence)
    return parse_sentence(self.scorer, self.system, self.dictionary, sentence)

  def predict_batch(
    self, sentences: Sequence[Sentence], n_workers: int = 1
  ) -> List[DependencyTree]:
    self._check_ready()
    for sentence in sentences:
      self._check_sentence(sentence)
    return parse_sentences(
      self.scorer, self.system, self.dictionary, sentences, n_workers
    )

  def test(self, test_file: str, out_file: Optional[str] = None) -> Dict[str, float]:
    """parses a CoNLL file, reports attachment scores, optionally writes output."""
    self._check_ready()
    test_sents, test_trees = load_conll_data(test_file)
    predicted = self.predict_batch(test_sents)
    result = evaluate(test_sents, predicted, test_trees, self.config.punctuation_tags)
    logger.info("UAS = %.2f%%", result["UASwoPunc"] * 100.0)
    logger.info("LAS = %.2f%%", result["LASwoPunc"] * 100.0)
    if out_file is not None:
      write_conll_data(out_file, test_sents, predicted)
    return result
