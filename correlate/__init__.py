"""
Correlate package: expose collaboration network builders.
"""

from .network import analyze_team_dynamics, build_edges, build_network, build_participation

__all__ = ["analyze_team_dynamics", "build_edges", "build_network", "build_participation"]
