"""Finite-element building blocks (shape functions, quadrature)."""
