"""rowlink matcher — nearest-source assignment for targets."""

from rowlink.match.matcher import Matcher, MatchReport, MatchRound

__all__ = ["Matcher", "MatchReport", "MatchRound"]
