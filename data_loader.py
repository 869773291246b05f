import os
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import numpy as np
from dotenv import load_dotenv
from schema import Sentence, DependencyTree, Dictionary, UNKNOWN, NULL, ROOT

load_dotenv()

logger = logging.getLogger(__name__)


def resolve_path(file_name: str) -> str:
  """relative names are looked up under DATA_PATH (absolute paths win)."""
  data_path = os.getenv("DATA_PATH", ".")
  return os.path.join(data_path, file_name)


def load_conll_data(
  file_name: str, lowercase: bool = False
) -> Tuple[List[Sentence], List[DependencyTree]]:
  """
  robust CoNLL-X loader.
  - splits on any whitespace (tabs OR spaces)
  - flushes last sentence even if file doesn't end with a blank line
  - skips multiword tokens like 1-2
  - columns used: 2 word, 5 POS, 7 head, 8 label
  """
  full_path = resolve_path(file_name)

  sentences: List[Sentence] = []
  trees: List[DependencyTree] = []
  word: List[str] = []
  pos: List[str] = []
  head: List[int] = []
  label: List[str] = []

  def flush():
    nonlocal word, pos, head, label
    if word:
      sentences.append(Sentence(word, pos))
      trees.append(DependencyTree.from_lists(head, label))
      word, pos, head, label = [], [], [], []

  with open(full_path, "r", encoding="utf-8") as f:
    for line_no, line in enumerate(f, 1):
      line = line.strip()
      if not line or line.startswith("#"):
        flush()
        continue

      sp = line.split()
      if len(sp) < 8:
        raise ValueError(
          f"{full_path}:{line_no}: expected at least 8 columns, got {len(sp)}"
        )

      if "-" in sp[0] or "." in sp[0]:
        continue

      word.append(sp[1].lower() if lowercase else sp[1])
      pos.append(sp[4])
      head.append(int(sp[6]))
      label.append(sp[7])

  flush()
  logger.info("loaded %d sentences from %s", len(sentences), full_path)
  return sentences, trees


def write_conll_data(
  file_name: str, sentences: Sequence[Sentence], trees: Sequence[DependencyTree]
) -> None:
  full_path = resolve_path(file_name)
  with open(full_path, "w", encoding="utf-8") as f:
    for sent, tree in zip(sentences, trees):
      for j in range(1, tree.n + 1):
        tag = sent.pos[j - 1]
        cols = [str(j), sent.words[j - 1], "_", tag, tag, "_"]
        cols += [str(tree.heads[j]), tree.labels[j], "_", "_"]
        f.write("\t".join(cols) + "\n")
      f.write("\n")
  logger.info("wrote %d sentences to %s", len(sentences), full_path)


def log_tree_stats(name: str, trees: Sequence[DependencyTree]) -> None:
  n_tokens = sum(tree.n for tree in trees)
  non_tree = sum(1 for tree in trees if not tree.is_tree())
  multi_root = sum(1 for tree in trees if not tree.is_single_root())
  non_projective = sum(1 for tree in trees if not tree.is_projective())
  logger.info(
    "%s: #sents: %d | #tokens: %d | #non-trees: %d | #multi-root: %d | "
    "#non-projective: %d",
    name,
    len(trees),
    n_tokens,
    non_tree,
    multi_root,
    non_projective,
  )


def generate_dict(items: Iterable[str], cutoff: int = 1) -> List[str]:
  """distinct items seen at least cutoff times, most frequent first."""
  return [item for item, count in Counter(items).most_common() if count >= cutoff]


def build_dictionary(
  sentences: Sequence[Sentence],
  trees: Sequence[DependencyTree],
  word_cutoff: int = 1,
) -> Dictionary:
  """
  builds the word / POS / label lists of a training corpus.
  reserved entries come first: UNKNOWN, NULL, ROOT for words and POS,
  then NULL followed by the root label for labels.
  """
  words = [w for sent in sentences for w in sent.words]
  tags = [p for sent in sentences for p in sent.pos]

  root_label = None
  labels = []
  for tree in trees:
    for k in range(1, tree.n + 1):
      if tree.heads[k] == 0:
        root_label = tree.labels[k]
      else:
        labels.append(tree.labels[k])
  if root_label is None:
    raise ValueError("training corpus has no token attached to ROOT")

  known_words = [UNKNOWN, NULL, ROOT] + generate_dict(words, word_cutoff)
  known_pos = [UNKNOWN, NULL, ROOT] + generate_dict(tags)
  known_labels = [NULL, root_label] + [
    ll for ll in generate_dict(labels) if ll != root_label
  ]

  dictionary = Dictionary.create(known_words, known_pos, known_labels)
  logger.info(
    "#word: %d | #POS: %d | #label: %d",
    len(known_words),
    len(known_pos),
    len(known_labels),
  )
  return dictionary


def load_embeddings(
  file_name: Optional[str],
) -> Tuple[Dict[str, int], Optional[np.ndarray]]:
  """reads 'token v1 ... vD' lines; returns token -> row and the (n, D) matrix."""
  if file_name is None:
    return {}, None

  full_path = resolve_path(file_name)
  embed_ids: Dict[str, int] = {}
  vectors: List[List[float]] = []
  with open(full_path, "r", encoding="utf-8") as f:
    for line in f:
      sp = line.split()
      if not sp:
        continue
      if vectors and len(sp) - 1 != len(vectors[0]):
        raise ValueError(
          f"{full_path}: inconsistent embedding dimension for {sp[0]!r}"
        )
      embed_ids[sp[0]] = len(vectors)
      vectors.append([float(v) for v in sp[1:]])

  embeddings = np.array(vectors, dtype=np.float32)
  logger.info(
    "embedding file %s: #words = %d, dim = %d",
    full_path,
    embeddings.shape[0],
    embeddings.shape[1] if embeddings.ndim == 2 else 0,
  )
  return embed_ids, embeddings
