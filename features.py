from typing import List
from engine import Configuration
from schema import Dictionary

N_FEATURES = 48


def extract_features(c: Configuration, dictionary: Dictionary) -> List[int]:
  """
  48 feature IDs: 18 words, 18 POS tags, 12 labels, in that order.

  positions: s2, s1, s0, b0, b1, b2, then for s0 and s1 the leftmost,
  rightmost, second leftmost and second rightmost children, the leftmost
  child of the leftmost child and the rightmost child of the rightmost child.
  """
  f_word: List[int] = []
  f_pos: List[int] = []
  f_label: List[int] = []

  for j in (2, 1, 0):
    index = c.get_stack(j)
    f_word.append(dictionary.word_id(c.get_word(index)))
    f_pos.append(dictionary.pos_id(c.get_pos(index)))

  for j in (0, 1, 2):
    index = c.get_buffer(j)
    f_word.append(dictionary.word_id(c.get_word(index)))
    f_pos.append(dictionary.pos_id(c.get_pos(index)))

  for j in (0, 1):
    k = c.get_stack(j)
    lc = c.get_left_child(k)
    rc = c.get_right_child(k)
    children = (
      lc,
      rc,
      c.get_left_child(k, 2),
      c.get_right_child(k, 2),
      c.get_left_child(lc),
      c.get_right_child(rc),
    )
    for index in children:
      f_word.append(dictionary.word_id(c.get_word(index)))
      f_pos.append(dictionary.pos_id(c.get_pos(index)))
      f_label.append(dictionary.label_id(c.get_label(index)))

  return f_word + f_pos + f_label
