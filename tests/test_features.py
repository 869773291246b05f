from schema import Transition, SHIFT, NULL, ROOT, UNKNOWN
from features import extract_features, N_FEATURES


def test_root_maps_to_null_entry(dictionary):
  # legacy compatibility: the ROOT sentinel shares the NULL embedding
  assert dictionary.word_id(ROOT) == dictionary.word_ids[NULL]
  assert dictionary.word_id(ROOT) != dictionary.word_ids[ROOT]
  assert dictionary.pos_id(ROOT) == dictionary.pos_ids[NULL]
  assert dictionary.pos_id(ROOT) != dictionary.pos_ids[ROOT]


def test_unknown_word_and_tag(dictionary):
  assert dictionary.word_id("platypus") == dictionary.word_ids[UNKNOWN]
  assert dictionary.pos_id("XYZ") == dictionary.pos_ids[UNKNOWN]


def test_initial_configuration_features(system, dictionary, dogs):
  sent, _ = dogs
  f = extract_features(system.initial_configuration(sent), dictionary)
  null_w = dictionary.word_ids[NULL]
  null_p = dictionary.pos_ids[NULL]
  null_l = dictionary.label_ids[NULL]

  assert len(f) == N_FEATURES == 48
  # s2, s1 absent; s0 is ROOT
  assert f[0:3] == [null_w, null_w, null_w]
  assert f[3:6] == [dictionary.word_id(w) for w in sent.words]
  assert f[6:18] == [null_w] * 12
  assert f[18:21] == [null_p] * 3
  assert f[21:24] == [dictionary.pos_id(p) for p in sent.pos]
  assert f[36:48] == [null_l] * 12


def test_features_use_partial_tree(system, dictionary, dogs):
  sent, _ = dogs
  c = system.initial_configuration(sent)
  system.apply(c, SHIFT)
  system.apply(c, SHIFT)
  system.apply(c, Transition("L", "subj"))
  f = extract_features(c, dictionary)

  assert f[2] == dictionary.word_id("bark")
  assert f[3] == dictionary.word_id("loudly")
  assert f[4] == dictionary.word_ids[NULL]
  # leftmost child of s0
  assert f[6] == dictionary.word_id("Dogs")
  assert f[18 + 6] == dictionary.pos_id("NNS")
  assert f[36] == dictionary.label_id("subj")
  assert f[37] == dictionary.label_ids[NULL]


def test_feature_blocks_stay_in_their_id_ranges(system, dictionary, chased):
  sent, tree = chased
  n_words = len(dictionary.known_words)
  n_pos = len(dictionary.known_pos)
  c = system.initial_configuration(sent)
  while not system.is_terminal(c):
    f = extract_features(c, dictionary)
    assert len(f) == 48
    assert all(0 <= x < n_words for x in f[:18])
    assert all(n_words <= x < n_words + n_pos for x in f[18:36])
    assert all(n_words + n_pos <= x < dictionary.size for x in f[36:])
    system.apply(c, system.get_oracle(c, tree))
