import time
import logging
from typing import NamedTuple, Optional, Sequence
import numpy as np
import jax
import jax.numpy as jnp
import optax

from config import ParserConfig
from schema import Dataset, Dictionary, Sentence, DependencyTree
from engine import ArcStandard
from scorer import Scorer
from inference import parse_sentences, evaluate

logger = logging.getLogger(__name__)


class ScaleByAdaGradState(NamedTuple):
  sum_of_squares: optax.Updates


def scale_by_adagrad(eps: float = 1e-6) -> optax.GradientTransformation:
  """
  divides each gradient element by sqrt(sum of its squared history) + eps.
  rarely touched embedding rows keep large steps, busy weights get small ones.

  not optax.adagrad / optax.scale_by_rss: those compute g * rsqrt(acc + eps)
  from a nonzero initial accumulator, while this update starts at zero and
  adds eps after the square root.
  """

  def init_fn(params):
    return ScaleByAdaGradState(jax.tree_util.tree_map(jnp.zeros_like, params))

  def update_fn(updates, state, params=None):
    del params
    sum_of_squares = jax.tree_util.tree_map(
      lambda g, acc: acc + jnp.square(g), updates, state.sum_of_squares
    )
    updates = jax.tree_util.tree_map(
      lambda g, acc: g / (jnp.sqrt(acc) + eps), updates, sum_of_squares
    )
    return updates, ScaleByAdaGradState(sum_of_squares)

  return optax.GradientTransformation(init_fn, update_fn)


def adagrad(learning_rate: float, eps: float = 1e-6) -> optax.GradientTransformation:
  return optax.chain(scale_by_adagrad(eps), optax.scale(-learning_rate))


def sample_minibatch(dataset: Dataset, batch_size: int, rng: np.random.Generator):
  """uniform sample without replacement; the whole set if it is smaller."""
  n = len(dataset)
  size = min(batch_size, n)
  indices = rng.choice(n, size=size, replace=False)
  return dataset.features[indices], dataset.labels[indices]


class Trainer:
  """
  sequential mini-batch training of a Scorer.

  the adagrad accumulators live here for the whole run; the scorer only
  receives the final updates through apply_gradient.
  """

  def __init__(
    self,
    scorer: Scorer,
    config: ParserConfig,
    system: Optional[ArcStandard] = None,
    dictionary: Optional[Dictionary] = None,
  ):
    self.scorer = scorer
    self.config = config
    self.system = system
    self.dictionary = dictionary
    self.tx = adagrad(config.learning_rate, config.ada_eps)
    self.opt_state = self.tx.init(scorer.params)
    self._np_rng = np.random.default_rng(config.seed)
    self._rng = jax.random.PRNGKey(config.seed)

  def step(self, batch_x: np.ndarray, batch_y: np.ndarray):
    """one train_step + one parameter update."""
    self._rng, dropout_rng = jax.random.split(self._rng)
    cost = self.scorer.train_step(
      batch_x,
      batch_y,
      self.config.l2_weight,
      self.config.dropout_rate,
      dropout_rng,
    )
    updates, self.opt_state = self.tx.update(
      cost.grads, self.opt_state, self.scorer.params
    )
    self.scorer.apply_gradient(updates)
    return cost

  def dev_uas(
    self, dev_sents: Sequence[Sentence], dev_trees: Sequence[DependencyTree]
  ) -> float:
    # weights changed since the last cache build
    self.scorer.precompute()
    predicted = parse_sentences(self.scorer, self.system, self.dictionary, dev_sents)
    result = evaluate(dev_sents, predicted, dev_trees, self.config.punctuation_tags)
    return result["UASwoPunc"]

  def train(
    self,
    dataset: Dataset,
    dev_sents: Optional[Sequence[Sentence]] = None,
    dev_trees: Optional[Sequence[DependencyTree]] = None,
    max_iter: Optional[int] = None,
  ) -> None:
    if len(dataset) == 0:
      raise ValueError("cannot train on an empty dataset")
    max_iter = self.config.max_iter if max_iter is None else max_iter
    evaluate_dev = bool(dev_sents) and self.system is not None

    start = time.time()
    for iteration in range(max_iter):
      batch_x, batch_y = sample_minibatch(
        dataset, self.config.batch_size, self._np_rng
      )
      cost = self.step(batch_x, batch_y)
      logger.info(
        "iteration %d | cost: %.6f | correct: %.2f%% | elapsed: %.1fs",
        iteration,
        cost.loss,
        cost.accuracy * 100.0,
        time.time() - start,
      )

      if evaluate_dev and iteration % self.config.eval_per_iter == 0:
        uas = self.dev_uas(dev_sents, dev_trees)
        logger.info("iteration %d | dev UAS: %.2f%%", iteration, uas * 100.0)
