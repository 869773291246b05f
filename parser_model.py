import jax
import jax.numpy as jnp
import flax.linen as nn


def symmetric_uniform(scale: float):
  """initializer drawing from U(-scale, scale)."""

  def init(key, shape, dtype=jnp.float32):
    return jax.random.uniform(key, shape, dtype, minval=-scale, maxval=scale)

  return init


class ParserModel(nn.Module):
  """
  flax implementation of the feed-forward transition classifier:
  embeddings -> affine -> cube -> (dropout) -> linear scores.
  """

  vocab_size: int
  n_features: int = 48
  embed_size: int = 50
  hidden_size: int = 200
  n_classes: int = 3
  init_range: float = 0.01

  @nn.compact
  def __call__(self, x, dropout_rate: float = 0.0, train: bool = True):
    """
    x: (batch_size, n_features) - dictionary IDs
    """
    embeddings = self.param(
      "embeddings",
      symmetric_uniform(self.init_range),
      (self.vocab_size, self.embed_size),
    )

    # (batch, n_features * embed_size); slot-major so W1 splits per feature slot
    x = embeddings[x].reshape((x.shape[0], -1))

    h = nn.Dense(
      features=self.hidden_size,
      kernel_init=symmetric_uniform(self.init_range),
      bias_init=symmetric_uniform(self.init_range),
      name="hidden",
    )(x)
    # cube activation: the pre-activation stays additive across feature slots
    h = h * h * h

    if train:
      # dropped units are zeroed, kept units are not rescaled
      keep = jax.random.bernoulli(self.make_rng("dropout"), 1.0 - dropout_rate, h.shape)
      h = jnp.where(keep, h, 0.0)

    return nn.Dense(
      features=self.n_classes,
      use_bias=False,
      kernel_init=symmetric_uniform(self.init_range),
      name="output",
    )(h)


def loss_fn(apply_fn, params, batch_x, batch_y, l2_weight, dropout_rate, dropout_rng):
  """
  softmax cross entropy restricted to legal transitions plus an L2 penalty.

  batch_y: (batch_size, n_classes) with 1 = gold, 0 = legal, -1 = illegal.
  illegal transitions are left out of the normalization and get no gradient.
  returns (loss, fraction of examples whose gold transition scores highest).
  """
  logits = apply_fn(
    {"params": params},
    batch_x,
    dropout_rate=dropout_rate,
    train=True,
    rngs={"dropout": dropout_rng},
  )
  masked = jnp.where(batch_y >= 0, logits, -jnp.inf)
  log_norm = jax.nn.logsumexp(masked, axis=-1)
  gold = jnp.sum(jnp.where(batch_y == 1, logits, 0.0), axis=-1)
  loss = jnp.mean(log_norm - gold)

  l2 = sum(jnp.sum(jnp.square(p)) for p in jax.tree_util.tree_leaves(params))
  correct = jnp.mean(jnp.argmax(masked, axis=-1) == jnp.argmax(batch_y, axis=-1))
  return loss + 0.5 * l2_weight * l2, correct
