import logging
import numpy as np
import jax
import jax.numpy as jnp
from config import ParserConfig
from trainer import Trainer, adagrad, sample_minibatch


def test_adagrad_update_rule():
  params = {"w": jnp.array([1.0, 2.0])}
  grads = {"w": jnp.array([0.5, -2.0])}
  tx = adagrad(0.1, 1e-6)
  state = tx.init(params)

  updates, state = tx.update(grads, state)
  np.testing.assert_allclose(
    updates["w"], -0.1 * np.array([0.5, -2.0]) / (np.array([0.5, 2.0]) + 1e-6),
    rtol=1e-5,
  )

  updates, state = tx.update(grads, state)
  acc = 2 * np.array([0.25, 4.0])
  np.testing.assert_allclose(
    updates["w"], -0.1 * np.array([0.5, -2.0]) / (np.sqrt(acc) + 1e-6), rtol=1e-5
  )


def test_sample_minibatch(dataset):
  data, _ = dataset
  rng = np.random.default_rng(0)
  x, y = sample_minibatch(data, 8, rng)
  assert x.shape == (8, 48)
  assert y.shape == (8, data.labels.shape[1])

  x, y = sample_minibatch(data, 1000, rng)
  assert x.shape[0] == len(data)


def full_loss(scorer, data):
  return scorer.train_step(
    data.features, data.labels, 0.0, 0.0, jax.random.PRNGKey(0)
  ).loss


def test_training_reduces_loss(make_scorer, dataset):
  data, _ = dataset
  scorer = make_scorer(init_range=0.1)
  config = ParserConfig(
    learning_rate=0.01, dropout_rate=0.0, batch_size=len(data), seed=1
  )
  trainer = Trainer(scorer, config)
  before = full_loss(scorer, data)
  trainer.train(data, max_iter=50)
  assert full_loss(scorer, data) < before


def test_step_updates_parameters_and_invalidates_cache(make_scorer, dataset):
  data, keys = dataset
  scorer = make_scorer()
  scorer.precompute(keys)
  trainer = Trainer(scorer, ParserConfig(dropout_rate=0.5, batch_size=4))
  before = scorer.arrays()[1]
  cost = trainer.step(data.features[:4], data.labels[:4])
  assert np.isfinite(cost.loss)
  assert not scorer.is_precomputed
  assert not np.array_equal(before, scorer.arrays()[1])


def test_dev_evaluation_is_logged(
  make_scorer, dataset, system, dictionary, corpus, caplog
):
  data, keys = dataset
  scorer = make_scorer(init_range=0.1)
  scorer.pre_computed = keys
  config = ParserConfig(dropout_rate=0.0, batch_size=8, eval_per_iter=2)
  trainer = Trainer(scorer, config, system, dictionary)
  sents, trees = corpus

  with caplog.at_level(logging.INFO, logger="trainer"):
    trainer.train(data, sents, trees, max_iter=3)
  dev_lines = [r for r in caplog.records if "dev UAS" in r.getMessage()]
  # iterations 0 and 2
  assert len(dev_lines) == 2
  assert scorer.is_precomputed
