import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Sequence
from schema import Sentence, DependencyTree, Dictionary
from engine import ArcStandard, predict_action
from features import extract_features

logger = logging.getLogger(__name__)


def parse_sentence(
  scorer, system: ArcStandard, dictionary: Dictionary, sentence: Sentence
) -> DependencyTree:
  """
  greedy decoding: exactly 2n steps, each taking the best legal transition.
  """
  c = system.initial_configuration(sentence)
  for _ in range(2 * len(sentence)):
    scores = scorer.score(extract_features(c, dictionary))
    transition = predict_action(system, c, scores)
    if transition is None:
      break
    system.apply(c, transition)
  return c.tree


def parse_sentences(
  scorer,
  system: ArcStandard,
  dictionary: Dictionary,
  sentences: Iterable[Sentence],
  n_workers: int = 1,
) -> List[DependencyTree]:
  """sentences are independent; the scorer is only read."""
  if n_workers <= 1:
    return [parse_sentence(scorer, system, dictionary, s) for s in sentences]
  with ThreadPoolExecutor(max_workers=n_workers) as pool:
    return list(
      pool.map(lambda s: parse_sentence(scorer, system, dictionary, s), sentences)
    )


def evaluate(
  sentences: Sequence[Sentence],
  predicted: Sequence[DependencyTree],
  gold: Sequence[DependencyTree],
  punctuation_tags: Iterable[str] = (),
) -> Dict[str, float]:
  """
  attachment scores as fractions of tokens:
    UAS / LAS           - correct head / head and label
    UASwoPunc / LASwoPunc - same, ignoring tokens with a punctuation gold tag
    UEM / UEMwoPunc     - sentences whose heads are all correct
    ROOT                - sentences whose root token is correct
  """
  if len(predicted) != len(gold) or len(sentences) != len(gold):
    raise ValueError(
      f"sentence/tree count mismatch: {len(sentences)} sentences, "
      f"{len(predicted)} predicted, {len(gold)} gold"
    )
  punctuation = set(punctuation_tags)

  correct_arcs = correct_arcs_wo_punc = 0
  correct_heads = correct_heads_wo_punc = 0
  sum_arcs = sum_arcs_wo_punc = 0
  correct_exact = correct_exact_wo_punc = correct_root = 0

  for sent, pred, ref in zip(sentences, predicted, gold):
    if pred.n != ref.n:
      raise ValueError(f"tree size mismatch: predicted {pred.n}, gold {ref.n}")
    n_correct_head = n_correct_head_wo_punc = n_wo_punc = 0

    for j in range(1, ref.n + 1):
      is_punc = sent.pos[j - 1] in punctuation
      head_ok = pred.heads[j] == ref.heads[j]
      label_ok = head_ok and pred.labels[j] == ref.labels[j]

      sum_arcs += 1
      correct_heads += head_ok
      correct_arcs += label_ok
      n_correct_head += head_ok
      if not is_punc:
        sum_arcs_wo_punc += 1
        n_wo_punc += 1
        correct_heads_wo_punc += head_ok
        correct_arcs_wo_punc += label_ok
        n_correct_head_wo_punc += head_ok

    correct_exact += n_correct_head == ref.n
    correct_exact_wo_punc += n_correct_head_wo_punc == n_wo_punc
    correct_root += pred.get_root() == ref.get_root()

  n_sents = len(gold)

  def ratio(a: int, b: int) -> float:
    return a / b if b else 0.0

  return {
    "UAS": ratio(correct_heads, sum_arcs),
    "LAS": ratio(correct_arcs, sum_arcs),
    "UASwoPunc": ratio(correct_heads_wo_punc, sum_arcs_wo_punc),
    "LASwoPunc": ratio(correct_arcs_wo_punc, sum_arcs_wo_punc),
    "UEM": ratio(correct_exact, n_sents),
    "UEMwoPunc": ratio(correct_exact_wo_punc, n_sents),
    "ROOT": ratio(correct_root, n_sents),
  }
