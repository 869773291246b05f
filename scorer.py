import logging
from collections import defaultdict
from functools import partial
from typing import Any, Dict, List, NamedTuple, Optional, Sequence
import numpy as np
import jax
import jax.numpy as jnp
import optax
from flax.core import unfreeze
from parser_model import ParserModel, loss_fn

logger = logging.getLogger(__name__)


class Cost(NamedTuple):
  """result of one mini-batch: loss, training accuracy and the gradient tree."""

  loss: float
  accuracy: float
  grads: Any


class InferenceWeights(NamedTuple):
  """float64 host copy of the parameters used by the per-transition path."""

  embeddings: np.ndarray  # (vocab_size, embed_size)
  hidden: np.ndarray  # (n_features, embed_size, hidden_size)
  bias: np.ndarray  # (hidden_size,)
  output: np.ndarray  # (hidden_size, n_classes)


class Scorer:
  """
  owns the network parameters.

  training goes through train_step (loss + gradient, no update) and
  apply_gradient (the only mutation). inference goes through score, which
  adds precomputed hidden-layer contributions for frequent (feature, slot)
  pairs; the cache is dropped on every parameter change and rebuilt by
  precompute.
  """

  def __init__(
    self,
    model: ParserModel,
    params: Optional[Dict] = None,
    pre_computed: Optional[Sequence[int]] = None,
  ):
    self.model = model
    self.pre_computed: List[int] = list(pre_computed or [])
    self._params = None if params is None else unfreeze(params)
    self._weights: Optional[InferenceWeights] = None
    self._cache: Optional[np.ndarray] = None
    self._cache_index: Dict[int, int] = {}

    self._grad_fn = jax.jit(
      jax.value_and_grad(partial(loss_fn, model.apply), has_aux=True)
    )
    self._forward = jax.jit(partial(model.apply, train=False))

  @classmethod
  def create(cls, model: ParserModel, rng, pre_computed=None) -> "Scorer":
    """randomly initialized parameters."""
    dummy = jnp.zeros((1, model.n_features), dtype=jnp.int32)
    variables = model.init({"params": rng}, dummy, train=False)
    return cls(model, variables["params"], pre_computed)

  @classmethod
  def from_arrays(
    cls,
    model: ParserModel,
    embeddings: np.ndarray,
    W1: np.ndarray,
    b1: np.ndarray,
    W2: np.ndarray,
    pre_computed=None,
  ) -> "Scorer":
    """
    W1: (hidden_size, n_features * embed_size), W2: (n_classes, hidden_size).
    """
    params = {
      "embeddings": jnp.asarray(embeddings, dtype=jnp.float32),
      "hidden": {
        "kernel": jnp.asarray(np.asarray(W1).T, dtype=jnp.float32),
        "bias": jnp.asarray(b1, dtype=jnp.float32),
      },
      "output": {"kernel": jnp.asarray(np.asarray(W2).T, dtype=jnp.float32)},
    }
    return cls(model, params, pre_computed)

  @property
  def params(self) -> Dict:
    if self._params is None:
      raise RuntimeError("scorer parameters have not been initialized")
    return self._params

  @property
  def n_features(self) -> int:
    return self.model.n_features

  @property
  def n_classes(self) -> int:
    return self.model.n_classes

  def arrays(self):
    """(embeddings, W1, b1, W2) as numpy, W1 / W2 in (out, in) orientation."""
    p = self.params
    return (
      np.asarray(p["embeddings"]),
      np.asarray(p["hidden"]["kernel"]).T,
      np.asarray(p["hidden"]["bias"]),
      np.asarray(p["output"]["kernel"]).T,
    )

  def set_embeddings(self, rows: Sequence[int], vectors: np.ndarray) -> None:
    """overwrites embedding rows, e.g. with pretrained vectors."""
    if len(rows) == 0:
      return
    p = self.params
    p["embeddings"] = p["embeddings"].at[jnp.asarray(rows)].set(
      jnp.asarray(vectors, dtype=p["embeddings"].dtype)
    )
    self._invalidate()

  def apply_gradient(self, updates) -> None:
    """adds optimizer updates to the parameters and drops the derived cache."""
    self._params = optax.apply_updates(self.params, updates)
    self._invalidate()

  def _invalidate(self) -> None:
    self._weights = None
    self._cache = None
    self._cache_index = {}

  def _inference_weights(self) -> InferenceWeights:
    if self._weights is None:
      p = self.params
      kernel = np.asarray(p["hidden"]["kernel"], dtype=np.float64)
      self._weights = InferenceWeights(
        embeddings=np.asarray(p["embeddings"], dtype=np.float64),
        hidden=kernel.reshape(self.model.n_features, self.model.embed_size, -1),
        bias=np.asarray(p["hidden"]["bias"], dtype=np.float64),
        output=np.asarray(p["output"]["kernel"], dtype=np.float64),
      )
    return self._weights

  def precompute(self, keys: Optional[Sequence[int]] = None) -> None:
    """
    rebuilds W1[:, slot] . E[feature] for every cached key from the current
    parameters. keys are encoded as feature_id * n_features + slot.
    """
    if keys is not None:
      self.pre_computed = list(keys)
    w = self._inference_weights()
    n_features = self.model.n_features

    cache = np.zeros((len(self.pre_computed), w.bias.shape[0]), dtype=np.float64)
    index: Dict[int, int] = {}
    rows_by_slot = defaultdict(list)
    for row, key in enumerate(self.pre_computed):
      index[key] = row
      rows_by_slot[key % n_features].append(row)

    encoded = np.asarray(self.pre_computed, dtype=np.int64)
    for slot, rows in rows_by_slot.items():
      rows = np.asarray(rows)
      cache[rows] = w.embeddings[encoded[rows] // n_features] @ w.hidden[slot]

    self._cache = cache
    self._cache_index = index
    logger.debug("precomputed %d hidden-layer contributions", len(index))

  @property
  def is_precomputed(self) -> bool:
    return self._cache is not None

  def score(self, features: Sequence[int]) -> np.ndarray:
    """scores of every transition for one feature vector."""
    features = np.asarray(features)
    n_features = self.model.n_features
    if features.shape != (n_features,):
      raise ValueError(
        f"expected {n_features} feature IDs, got shape {features.shape}"
      )

    w = self._inference_weights()
    cache = self._cache
    index = self._cache_index if cache is not None else {}

    hidden = w.bias.copy()
    for slot, f in enumerate(features.tolist()):
      row = index.get(f * n_features + slot)
      if row is None:
        hidden += w.embeddings[f] @ w.hidden[slot]
      else:
        hidden += cache[row]
    return (hidden * hidden * hidden) @ w.output

  def score_batch(self, features: np.ndarray) -> np.ndarray:
    """scores of a (batch, n_features) array through the jitted network."""
    features = np.asarray(features, dtype=np.int32)
    if features.ndim != 2 or features.shape[1] != self.model.n_features:
      raise ValueError(
        f"expected (batch, {self.model.n_features}) feature IDs, "
        f"got shape {features.shape}"
      )
    return np.asarray(self._forward({"params": self.params}, jnp.asarray(features)))

  def train_step(
    self,
    batch_x: np.ndarray,
    batch_y: np.ndarray,
    l2_weight: float,
    dropout_rate: float,
    dropout_rng,
  ) -> Cost:
    """loss and gradient of one mini-batch; parameters are left untouched."""
    (loss, accuracy), grads = self._grad_fn(
      self.params,
      jnp.asarray(batch_x, dtype=jnp.int32),
      jnp.asarray(batch_y, dtype=jnp.int32),
      l2_weight,
      dropout_rate,
      dropout_rng,
    )
    return Cost(loss=float(loss), accuracy=float(accuracy), grads=grads)
