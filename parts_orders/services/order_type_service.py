from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from parts_orders.models import OrderType
from parts_orders.services.row_store import OrderLine

CSV_ORDER_PART_ID = 'CSV-ORDER'
CUSTOM_PART_PREFIX = 'CUSTOM-'
CUSTOM_PRODUCT_CODE = 'N/A'
DIRECTORY_PART_ID_RE = re.compile(r'^[A-Z]{4}-\d{3}$')

CSV_SUPPLIER = 'WCP'
CSV_JUSTIFICATION = 'CSV order - no justification'


def classify_order_type(lines: list[OrderLine]) -> OrderType:
    if not lines:
        return OrderType.DIRECTORY
    first = lines[0]
    if first.part_id == CSV_ORDER_PART_ID:
        return OrderType.CSV
    if first.part_id.startswith(CUSTOM_PART_PREFIX) and first.product_code == CUSTOM_PRODUCT_CODE:
        return OrderType.CUSTOM
    if DIRECTORY_PART_ID_RE.match(first.part_id):
        return OrderType.DIRECTORY
    return OrderType.DIRECTORY


@dataclass(frozen=True)
class DirectoryFields:
    product_code: str
    supplier: str
    supplier_link: str
    justification: str


@dataclass(frozen=True)
class CustomFields:
    supplier: str
    supplier_link: str
    justification: str


@dataclass(frozen=True)
class CSVFields:
    supplier_link: str
    csv_file_link: str


SubitemFields = Union[DirectoryFields, CustomFields, CSVFields]


def subitem_fields_for(line: OrderLine, order_type: OrderType) -> SubitemFields:
    if order_type == OrderType.CSV:
        return CSVFields(supplier_link=line.supplier_link, csv_file_link=line.csv_file_link)
    if order_type == OrderType.CUSTOM:
        return CustomFields(
            supplier=line.supplier,
            supplier_link=line.supplier_link,
            justification=line.justification,
        )
    return DirectoryFields(
        product_code=line.product_code,
        supplier=line.supplier,
        supplier_link=line.supplier_link,
        justification=line.justification,
    )


def _link(url: str, text: str) -> dict[str, str]:
    return {'url': url or '', 'text': text}


def render_subitem_columns(line: OrderLine, fields: SubitemFields, column_ids: dict[str, str]) -> dict:
    """Render one subitem's column values in Monday.com column-value JSON shape."""
    values: dict = {
        column_ids['partName']: line.part_name or '',
        column_ids['quantity']: line.quantity or 0,
        column_ids['totalCost']: str(line.total_cost or 0),
        column_ids['notes']: line.notes or '',
    }

    if isinstance(fields, CSVFields):
        values[column_ids['productCode']] = CSV_ORDER_PART_ID
        values[column_ids['supplier']] = CSV_SUPPLIER
        values[column_ids['supplierLink']] = _link(fields.supplier_link, 'WCP Quick Order')
        values[column_ids['csvFileLink']] = _link(fields.csv_file_link, 'View CSV File')
        values[column_ids['justification']] = CSV_JUSTIFICATION
    elif isinstance(fields, CustomFields):
        values[column_ids['productCode']] = CUSTOM_PRODUCT_CODE
        values[column_ids['supplier']] = fields.supplier
        values[column_ids['supplierLink']] = _link(fields.supplier_link, 'Part Link')
        values[column_ids['justification']] = fields.justification
    elif isinstance(fields, DirectoryFields):
        values[column_ids['productCode']] = fields.product_code
        values[column_ids['supplier']] = fields.supplier
        values[column_ids['supplierLink']] = _link(fields.supplier_link, 'Order Link')
        values[column_ids['justification']] = fields.justification
    else:
        raise TypeError(f'Unsupported subitem fields: {type(fields).__name__}')
    return values
