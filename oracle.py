import logging
from collections import Counter
from typing import List, Sequence, Tuple
import numpy as np
from schema import Sentence, DependencyTree, Dictionary, Dataset, Transition
from engine import ArcStandard, Configuration
from features import extract_features, N_FEATURES

logger = logging.getLogger(__name__)


def oracle_step(
  c: Configuration, gold: DependencyTree, system: ArcStandard, dictionary: Dictionary
) -> Tuple[List[int], List[int], Transition]:
  """
  a single step of the oracle used for generating training instances.
  label entries: 1 for the oracle transition, 0 if merely legal, -1 if illegal.
  """
  oracle = system.get_oracle(c, gold)
  legal = system.legal_mask(c)
  j = system.transition_id(oracle)
  if not legal[j]:
    raise ValueError(f"oracle transition {oracle} is illegal in {c!r}")

  features = extract_features(c, dictionary)
  label = [0 if ok else -1 for ok in legal.tolist()]
  label[j] = 1
  return features, label, oracle


def generate_examples(
  sentences: Sequence[Sentence],
  trees: Sequence[DependencyTree],
  system: ArcStandard,
  dictionary: Dictionary,
  n_pre_computed: int,
) -> Tuple[Dataset, List[int]]:
  """
  replays every projective gold tree through the oracle (2n steps each).
  trees with several roots, or whose root arc carries a label other than
  the system's root label, are skipped.
  also returns the n_pre_computed most frequent (feature, slot) keys,
  encoded as feature_id * n_features + slot.
  """
  all_features: List[List[int]] = []
  all_labels: List[List[int]] = []
  key_counts: Counter = Counter()
  skipped = 0
  other_root = 0

  for sent_idx, (sent, tree) in enumerate(zip(sentences, trees)):
    if not tree.is_projective() or not tree.is_single_root():
      skipped += 1
      continue
    if tree.labels[tree.get_root()] != system.root_label:
      other_root += 1
      continue

    c = system.initial_configuration(sent)
    for _ in range(2 * tree.n):
      features, label, oracle = oracle_step(c, tree, system, dictionary)
      all_features.append(features)
      all_labels.append(label)
      n_features = len(features)
      key_counts.update(f * n_features + j for j, f in enumerate(features))
      system.apply(c, oracle)

    if (sent_idx + 1) % 10000 == 0:
      logger.info(
        "processed %d sentences; instances so far: %d", sent_idx + 1, len(all_labels)
      )

  if skipped:
    logger.info("skipped %d non-projective or multi-root trees", skipped)
  if other_root:
    logger.warning(
      "skipped %d trees whose root label is not %r", other_root, system.root_label
    )
  logger.info("#train examples: %d", len(all_labels))

  n_examples = len(all_labels)
  dataset = Dataset(
    features=np.array(all_features, dtype=np.int32).reshape(n_examples, N_FEATURES),
    labels=np.array(all_labels, dtype=np.int32).reshape(
      n_examples, system.n_transitions
    ),
  )
  pre_computed = [key for key, _ in key_counts.most_common(n_pre_computed)]
  return dataset, pre_computed
