"""
ML layer — small feed-forward regressors for traffic congestion and energy
demand, trained in-process with PyTorch.

Modules
-------
codec      : Fixed per-domain feature normalization and output denormalization.
network    : build_network() (fixed 3→16→8→1 architecture) and TrainedModel
             (inference, save, load, metadata sidecar).
trainer    : ModelTrainer — async 50-epoch fit with one ProgressEvent per epoch.
registry   : ModelRegistry — per-domain model slot and training state machine.
predictor  : PredictionService — registry-backed point predictions.
"""
