"""Equilibria - small-matrix kernels and mean-variance equilibrium models."""

__version__ = "0.1.0"
