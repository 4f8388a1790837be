# phi_redaction/engine/__init__.py

"""Engine package providing tokenization, features, scoring and learning.

This package contains the pure detection and training functions plus the
weak-supervision labeler and corpus sources used for pretraining.
"""
