"""Version information for hierbinom."""

__version__ = "0.1.0"
__author__ = "hierbinom contributors"
__email__ = "hierbinom@users.noreply.github.com"
__description__ = "Hierarchical Beta-Binomial models via Metropolis-within-Gibbs"
__url__ = "https://github.com/hierbinom/hierbinom"
