from enum import Enum


class TransactionTypeEnum(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

class AssetTypeEnum(str, Enum):
    STOCK = "STOCK"
    ETF = "ETF"
    BOND = "BOND"
    MUTUAL_FUND = "MUTUAL_FUND"
    MUTUALFUND = "MUTUALFUND"
    FUND = "FUND"
    INDEX = "INDEX"

class CategoryEnum(str, Enum):
    STOCKS = "stocks"
    BONDS = "bonds"
    MUTUAL_FUNDS = "mutualFunds"
    CASH = "cash"

ASSET_TYPE_CATEGORIES = {
    AssetTypeEnum.STOCK.value: CategoryEnum.STOCKS,
    AssetTypeEnum.ETF.value: CategoryEnum.STOCKS,
    AssetTypeEnum.BOND.value: CategoryEnum.BONDS,
    AssetTypeEnum.MUTUAL_FUND.value: CategoryEnum.MUTUAL_FUNDS,
    AssetTypeEnum.MUTUALFUND.value: CategoryEnum.MUTUAL_FUNDS,
    AssetTypeEnum.FUND.value: CategoryEnum.MUTUAL_FUNDS,
}

class RangeEnum(str, Enum):
    ONE_DAY = "1d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1m"
    THREE_MONTHS = "3m"
    SIX_MONTHS = "6m"
    ONE_YEAR = "1y"
    YEAR_TO_DATE = "ytd"
    MAX = "max"

DEFAULT_RANGE = RangeEnum.ONE_MONTH

class SeriesSourceEnum(str, Enum):
    PRECOMPUTED = "precomputed"
    LIVE = "live"
