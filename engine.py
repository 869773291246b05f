from typing import List, Optional, Sequence
import numpy as np
from schema import (
  Sentence,
  DependencyTree,
  Transition,
  SHIFT,
  NULL,
  ROOT,
  NONEXIST,
)


class Configuration:
  """
  the mutable state of the parser for one sentence.
  the stack holds ROOT (index 0) at the bottom; the buffer holds 1..n.
  """

  def __init__(self, sentence: Sentence):
    self.sentence = sentence
    self.stack: List[int] = [0]
    self.buffer: List[int] = list(range(1, len(sentence) + 1))
    self.tree = DependencyTree.empty(len(sentence))

  @property
  def stack_size(self) -> int:
    return len(self.stack)

  @property
  def buffer_size(self) -> int:
    return len(self.buffer)

  def get_stack(self, j: int) -> int:
    """j-th element from the top of the stack, or -1."""
    if j < len(self.stack):
      return self.stack[-1 - j]
    return NONEXIST

  def get_buffer(self, j: int) -> int:
    if j < len(self.buffer):
      return self.buffer[j]
    return NONEXIST

  def get_word(self, k: int) -> str:
    if k == 0:
      return ROOT
    if 0 < k <= len(self.sentence):
      return self.sentence.words[k - 1]
    return NULL

  def get_pos(self, k: int) -> str:
    if k == 0:
      return ROOT
    if 0 < k <= len(self.sentence):
      return self.sentence.pos[k - 1]
    return NULL

  def get_label(self, k: int) -> str:
    if 0 < k <= self.tree.n:
      return self.tree.labels[k]
    return NULL

  def get_left_child(self, k: int, cnt: int = 1) -> int:
    """cnt-th child attached left of k, scanning left to right."""
    if k < 0 or k > self.tree.n:
      return NONEXIST
    c = 0
    for i in range(1, k):
      if self.tree.heads[i] == k:
        c += 1
        if c == cnt:
          return i
    return NONEXIST

  def get_right_child(self, k: int, cnt: int = 1) -> int:
    """cnt-th child attached right of k, scanning right to left."""
    if k < 0 or k > self.tree.n:
      return NONEXIST
    c = 0
    for i in range(self.tree.n, k, -1):
      if self.tree.heads[i] == k:
        c += 1
        if c == cnt:
          return i
    return NONEXIST

  def has_other_child(self, k: int, gold: DependencyTree) -> bool:
    """true if k still misses a gold dependent in the partial tree."""
    for i in range(1, gold.n + 1):
      if gold.heads[i] == k and self.tree.heads[i] != k:
        return True
    return False

  def add_arc(self, head: int, dep: int, label: str) -> None:
    self.tree.set(dep, head, label)

  def shift(self) -> None:
    self.stack.append(self.buffer.pop(0))

  def remove_top_stack(self) -> None:
    self.stack.pop()

  def remove_second_top_stack(self) -> None:
    del self.stack[-2]

  def __repr__(self) -> str:
    return f"Configuration(stack={self.stack}, buffer={self.buffer})"


class ArcStandard:
  """
  arc-standard transition system over a fixed label set.
  labels excludes the NULL sentinel; labels[0] is the root label.
  """

  def __init__(self, labels: Sequence[str], single_root: bool = True):
    if not labels:
      raise ValueError("transition system needs at least the root label")
    self.labels = list(labels)
    self.root_label = self.labels[0]
    self.single_root = single_root
    self.transitions: List[Transition] = (
      [Transition("L", ll) for ll in self.labels]
      + [Transition("R", ll) for ll in self.labels]
      + [SHIFT]
    )
    self._index = {t: i for i, t in enumerate(self.transitions)}

  @property
  def n_transitions(self) -> int:
    return len(self.transitions)

  def transition_id(self, t: Transition) -> int:
    try:
      return self._index[t]
    except KeyError:
      raise ValueError(f"transition {t} is not in the label set") from None

  def initial_configuration(self, sentence: Sentence) -> Configuration:
    return Configuration(sentence)

  def is_terminal(self, c: Configuration) -> bool:
    return c.stack_size == 1 and c.buffer_size == 0

  def can_apply(self, c: Configuration, t: Transition) -> bool:
    if t.kind in ("L", "R"):
      h = c.get_stack(0) if t.kind == "L" else c.get_stack(1)
      if h < 0:
        return False
      if h == 0 and t.label != self.root_label:
        return False

    n_stack = c.stack_size
    n_buffer = c.buffer_size

    if t.kind == "L":
      return n_stack > 2
    if t.kind == "R":
      if self.single_root:
        return n_stack > 2 or (n_stack == 2 and n_buffer == 0)
      return n_stack >= 2
    return n_buffer > 0

  def legal_mask(self, c: Configuration) -> np.ndarray:
    """boolean array aligned with self.transitions."""
    return np.array([self.can_apply(c, t) for t in self.transitions], dtype=bool)

  def apply(self, c: Configuration, t: Transition) -> None:
    """mutates c in place; the caller is responsible for legality."""
    w1 = c.get_stack(1)
    w2 = c.get_stack(0)
    if t.kind == "L":
      c.add_arc(w2, w1, t.label)
      c.remove_second_top_stack()
    elif t.kind == "R":
      c.add_arc(w1, w2, t.label)
      c.remove_top_stack()
    else:
      c.shift()

  def get_oracle(self, c: Configuration, gold: DependencyTree) -> Transition:
    """static arc-standard oracle: reduce as soon as a gold arc is complete."""
    w1 = c.get_stack(1)
    w2 = c.get_stack(0)
    if w1 > 0 and gold.heads[w1] == w2:
      return Transition("L", gold.labels[w1])
    if w1 >= 0 and gold.heads[w2] == w1 and not c.has_other_child(w2, gold):
      return Transition("R", gold.labels[w2])
    return SHIFT


def predict_action(
  system: ArcStandard, c: Configuration, scores: np.ndarray
) -> Optional[Transition]:
  """
  greedy selection of the best legal transition.
  ties go to the transition enumerated first.
  """
  legal = system.legal_mask(c)
  if not legal.any():
    return None
  scores = np.asarray(scores, dtype=np.float64)
  masked = np.where(legal & ~np.isnan(scores), scores, -np.inf)
  j = int(np.argmax(masked))
  if not legal[j]:
    # every legal score is -inf or nan
    j = int(np.argmax(legal))
  return system.transitions[j]
