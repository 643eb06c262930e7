from .model_factory import ModelFactory, EstimatorTrainer, TrainingFunction

__all__ = ['ModelFactory', 'EstimatorTrainer', 'TrainingFunction']
