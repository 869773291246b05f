import numpy as np
import pytest
from schema import Sentence, DependencyTree, UNKNOWN, NULL, ROOT
from data_loader import (
  load_conll_data,
  write_conll_data,
  build_dictionary,
  load_embeddings,
  generate_dict,
)
from config import check_dictionary, load_config

CONLL = """# sent_id = 1
1\tDogs\t_\tNOUN\tNNS\t_\t2\tsubj\t_\t_
2\tbark\t_\tVERB\tVBP\t_\t0\troot\t_\t_
3\tloudly\t_\tADV\tRB\t_\t2\tadv\t_\t_

1-2\tDon't\t_\t_\t_\t_\t_\t_\t_\t_
1\tDo\t_\tAUX\tVBP\t_\t3\taux\t_\t_
2\tn't\t_\tPART\tRB\t_\t3\tneg\t_\t_
3\tgo\t_\tVERB\tVB\t_\t0\troot\t_\t_"""


def test_load_conll_data(tmp_path):
  path = tmp_path / "corpus.conll"
  path.write_text(CONLL)
  sents, trees = load_conll_data(str(path))

  assert len(sents) == 2
  assert sents[0] == Sentence(["Dogs", "bark", "loudly"], ["NNS", "VBP", "RB"])
  assert trees[0].heads == [-1, 2, 0, 2]
  assert trees[0].labels[1:] == ["subj", "root", "adv"]
  # multiword range skipped, last sentence flushed without a blank line
  assert sents[1].words == ["Do", "n't", "go"]
  assert trees[1].heads[1:] == [3, 3, 0]


def test_load_conll_lowercase(tmp_path):
  path = tmp_path / "corpus.conll"
  path.write_text(CONLL)
  sents, _ = load_conll_data(str(path), lowercase=True)
  assert sents[0].words[0] == "dogs"


def test_short_lines_are_rejected(tmp_path):
  path = tmp_path / "bad.conll"
  path.write_text("1\tDogs\tNNS\t2\n")
  with pytest.raises(ValueError):
    load_conll_data(str(path))


def test_relative_paths_use_data_path(tmp_path, monkeypatch):
  (tmp_path / "corpus.conll").write_text(CONLL)
  monkeypatch.setenv("DATA_PATH", str(tmp_path))
  sents, _ = load_conll_data("corpus.conll")
  assert len(sents) == 2


def test_write_then_read(tmp_path, chased):
  path = str(tmp_path / "out.conll")
  write_conll_data(path, [chased[0]], [chased[1]])
  sents, trees = load_conll_data(path)
  assert sents == [chased[0]]
  assert trees == [chased[1]]


def test_generate_dict_orders_by_frequency():
  assert generate_dict(["b", "a", "b", "c", "a", "b"]) == ["b", "a", "c"]
  assert generate_dict(["b", "a", "b", "c", "a", "b"], cutoff=2) == ["b", "a"]


def test_build_dictionary(corpus):
  sents, trees = corpus
  dictionary = build_dictionary(sents, trees)
  check_dictionary(dictionary)

  assert dictionary.known_words[:3] == [UNKNOWN, NULL, ROOT]
  assert dictionary.known_pos[:3] == [UNKNOWN, NULL, ROOT]
  assert dictionary.known_labels[:3] == [NULL, "root", "det"]
  assert "root" not in dictionary.known_labels[2:]

  # one contiguous ID block: words, then POS, then labels
  n_words = len(dictionary.known_words)
  n_pos = len(dictionary.known_pos)
  assert dictionary.word_ids[UNKNOWN] == 0
  assert dictionary.pos_ids[UNKNOWN] == n_words
  assert dictionary.label_ids[NULL] == n_words + n_pos
  ids = (
    list(dictionary.word_ids.values())
    + list(dictionary.pos_ids.values())
    + list(dictionary.label_ids.values())
  )
  assert sorted(ids) == list(range(dictionary.size))


def test_word_cutoff(corpus):
  sents, trees = corpus
  dictionary = build_dictionary(sents, trees, word_cutoff=2)
  assert dictionary.known_words == [UNKNOWN, NULL, ROOT]
  assert dictionary.word_id("Dogs") == 0


def test_corpus_without_root_is_rejected():
  sent = Sentence(["a"], ["X"])
  with pytest.raises(ValueError):
    build_dictionary([sent], [DependencyTree.from_lists([1], ["dep"])])


def test_load_embeddings(tmp_path):
  path = tmp_path / "vectors.txt"
  path.write_text("the 0.1 0.2 0.3\ndog 1 2 3\n")
  ids, vectors = load_embeddings(str(path))
  assert ids == {"the": 0, "dog": 1}
  np.testing.assert_allclose(vectors[1], [1.0, 2.0, 3.0])
  assert load_embeddings(None) == ({}, None)


def test_load_config_from_environment(monkeypatch):
  monkeypatch.setenv("NNDEP_HIDDEN_SIZE", "64")
  monkeypatch.setenv("NNDEP_DROPOUT_RATE", "0.25")
  monkeypatch.setenv("NNDEP_SINGLE_ROOT", "false")
  monkeypatch.setenv("NNDEP_PUNCTUATION_TAGS", ".,PUNCT")
  config = load_config(batch_size=7)
  assert config.hidden_size == 64
  assert config.dropout_rate == 0.25
  assert config.single_root is False
  assert config.punctuation_tags == (".", "PUNCT")
  assert config.batch_size == 7
  assert config.embed_size == 50
