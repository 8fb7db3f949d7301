"""EfficientFrontier - Mean-variance frontier point for the current risk aversion."""

from __future__ import annotations

import numpy as np

from equilibria.core.services.optimised_portfolio import VARIANCE, OptimisedPortfolio


class EfficientFrontier(OptimisedPortfolio):
    """Fully invested portfolio with no group constraints.

    The QP is rebuilt and re-solved whenever the risk aversion or the
    shorting policy changes.
    """

    def _calculate_asset_weights(self) -> np.ndarray:
        model = self.make_model({})
        model.get_expression(VARIANCE).weight = self.risk_aversion / 2.0
        return self.handle(model.minimise())
