from stockledger.models.product import Product
from stockledger.models.batch import Batch
from stockledger.models.location import Location, LocationCell, LocationKind
from stockledger.models.stock_movement import MovementType, StockMovement
from stockledger.models.reorder_alert import AlertKind, ReorderAlert
from stockledger.models.sales import SaleLine
