from .service import LotteryService
