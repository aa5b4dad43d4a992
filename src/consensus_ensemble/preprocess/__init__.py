"""Preprocessing of ensembles before consensus"""

from .impute import impute_knn, impute_missing

__all__ = ['impute_knn', 'impute_missing']
