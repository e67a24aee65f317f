"""
Training datasets for the traffic and energy models.

Modules
-------
loader : load_samples() — reads a bundled or configured JSON dataset and
         validates every row into TrafficSample / EnergySample models.
"""
