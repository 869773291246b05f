import pytest
from schema import Sentence, DependencyTree
from data_loader import build_dictionary
from engine import ArcStandard


@pytest.fixture
def dogs():
  sent = Sentence(["Dogs", "bark", "loudly"], ["NNS", "VBP", "RB"])
  tree = DependencyTree.from_lists([2, 0, 2], ["subj", "root", "adv"])
  return sent, tree


@pytest.fixture
def chased():
  sent = Sentence(
    ["The", "quick", "dog", "chased", "a", "cat", "."],
    ["DT", "JJ", "NN", "VBD", "DT", "NN", "."],
  )
  tree = DependencyTree.from_lists(
    [3, 3, 4, 0, 6, 4, 4],
    ["det", "amod", "nsubj", "root", "det", "dobj", "punct"],
  )
  return sent, tree


@pytest.fixture
def crossing():
  # arcs 1<-3 and 2<-4 cross
  sent = Sentence(["a", "b", "c", "d"], ["X", "X", "X", "X"])
  tree = DependencyTree.from_lists([3, 4, 0, 3], ["dep", "dep", "root", "dep"])
  return sent, tree


@pytest.fixture
def corpus(dogs, chased):
  return [dogs[0], chased[0]], [dogs[1], chased[1]]


@pytest.fixture
def dictionary(corpus):
  return build_dictionary(*corpus)


@pytest.fixture
def system(dictionary):
  return ArcStandard(dictionary.known_labels[1:])


@pytest.fixture
def make_scorer(dictionary, system):
  import jax
  from parser_model import ParserModel
  from scorer import Scorer

  def make(embed_size=8, hidden_size=16, init_range=0.5, seed=0):
    model = ParserModel(
      vocab_size=dictionary.size,
      n_features=48,
      embed_size=embed_size,
      hidden_size=hidden_size,
      n_classes=system.n_transitions,
      init_range=init_range,
    )
    return Scorer.create(model, jax.random.PRNGKey(seed))

  return make


@pytest.fixture
def dataset(system, dictionary, corpus):
  from oracle import generate_examples

  sents, trees = corpus
  data, keys = generate_examples(sents, trees, system, dictionary, 200)
  return data, keys
