"""CLI module for equilibria.

Provides command-line interfaces for:
- Markowitz / efficient frontier optimisation
- Market equilibrium and Black-Litterman analysis
"""
