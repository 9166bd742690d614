from abc import ABC, abstractmethod
from typing import Callable

# Feed callbacks, matching the CashAndCarryEngine entry points.
TickerCallback = Callable[[float, float], object]   # (bid, ask)
TickerPairCallback = Callable[[float, float, float, float], object]  # (spot_bid, spot_ask, futures_bid, futures_ask)
FundingRateCallback = Callable[[float], object]     # rate as an exchange fraction

class MarketFeed(ABC):

    @abstractmethod
    async def run_forever(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass
