import operator

import numpy as np

from dotfuse import BroadcastRunner, ExecutionConfig, Ref, broadcast, broadcast_, broadcasted

# Column of sample points against a row of frequencies: a (5, 3) grid.
x = np.linspace(0.0, 1.0, 5).reshape(5, 1)
freq = np.array([[1.0, 2.0, 4.0]])

# Build the whole expression lazily; nothing is evaluated yet.
wave = broadcasted(np.sin, broadcasted(operator.mul, x, freq))
shifted = broadcasted(operator.add, wave, Ref(0.5))

runner = BroadcastRunner(ExecutionConfig())
grid = runner.materialize(shifted)
print(grid)
print(runner.explain())

# In place: the destination shape drives broadcasting.
acc = np.zeros((5, 3))
broadcast_(operator.add, acc, acc, grid)
print(acc.sum())

# All-scalar broadcasts collapse to a plain value.
print(broadcast(max, 3, 7))
