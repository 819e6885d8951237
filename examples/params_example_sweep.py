#!/usr/bin/env python
"""
Sweep demo params file
======================
Run with::

    python -m tdse_simulation.simulation.runner examples/params_example_sweep.py --ticks 300

Every list-valued scalar is a sweep axis; ``drawnPoints`` and the parameter
tables are never swept.
"""

# result directory suffix
description = "barrier_sweep"

# === grid / time ===
grid_size = 1024
x_min, x_max = -20.0, 20.0
dt = 0.005
steps_per_tick = 2

# === potential ===
potential_type = "barrier"
potential_v0 = [3.0, 5.0, 7.0]      # 3 cases
potential_width = 2.0

# === initial state ===
wavefunction_type = "gaussian"
wavefunction_x0 = -6.0
wavefunction_sigma = 1.0
wavefunction_k0 = [2.0, 3.0]        # 2 cases

# total: 3 x 2 = 6 cases
