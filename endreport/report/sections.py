"""The nine fixed sections of the end product report.

Each ``render_*`` function estimates the height of the section's first block
and asks the renderer for a header that stays on the same page as that block.
Row builders are plain functions so their output can be checked without
drawing anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from endreport.types import ReportInput

from .formatting import (
    NOT_PROVIDED,
    NOT_SPECIFIED,
    cell_text,
    display_value,
    file_type_label,
    format_date,
    format_datetime,
    format_file_size,
    format_number,
    humanize_key,
)
from .layout import (
    CAPTION_HEIGHT,
    FONT_BOLD,
    NOTICE_HEIGHT,
    SECTION_GAP,
    SUBSECTION_HEADER_HEIGHT,
    TableOptions,
    estimate_field_height,
    estimate_paragraph_height,
    estimate_table_height,
    estimate_two_column_height,
    table_row_heights,
)
from .renderer import SectionRenderer


NO_PRODUCTION_HISTORY = 'No production history data'

INGREDIENT_HEADERS = ['Ingredient name', 'Quantity', 'Unit', 'CAS Number', 'Notes']
MICRONUTRIENT_HEADERS = ['Code', 'Name', 'Quantity', 'Unit', 'Category']
EXPIRY_HEADERS = ['Material name', 'Batch', 'Quantity', 'Unit', 'Expiration date']
DOCUMENT_HEADERS = ['File type', 'File name', 'Size', 'Upload date']
PHYSICOCHEMICAL_HEADERS = ['File name', 'Size', 'PO Number', 'Upload date']
BATCH_CERTIFICATE_HEADERS = ['Ingredient', 'Batch', 'File name', 'Source']
HISTORY_HEADERS = ['Start date', 'End date', 'Quantity', 'Time spent']
SHIFT_HEADERS = ['Date', 'Responsible person', 'Shift workers', 'Quantity']
ALLERGEN_HEADERS = ['Allergen name', 'Status']

PHYSICOCHEMICAL_TABLE = TableOptions(font_size=7)
ALLERGEN_TABLE = TableOptions(header_color=(255, 87, 34), font_size=9)

QC_ATTACHMENT_FIELDS = (
    ('documentScansUrl', 'documentScansName', 'Document scans'),
    ('productPhoto1Url', 'productPhoto1Name', 'Product photo 1'),
    ('productPhoto2Url', 'productPhoto2Name', 'Product photo 2'),
    ('productPhoto3Url', 'productPhoto3Name', 'Product photo 3'),
)

GREEN = (76, 175, 80)
ACCENT = (25, 118, 210)
ORANGE = (255, 87, 34)


@dataclass(frozen=True)
class ReportContext:
    data: ReportInput
    task: Mapping[str, Any]
    generated_at: datetime

    @property
    def recipe(self) -> Mapping[str, Any]:
        recipe = self.task.get('recipe')
        return recipe if isinstance(recipe, Mapping) else {}

    @property
    def unit(self) -> str:
        return str(self.task.get('unit') or 'pcs')


@dataclass(frozen=True)
class FieldSpec:
    label: str
    value: Any
    multiline: bool = False
    placeholder: str = NOT_PROVIDED

    @property
    def text(self) -> str:
        return display_value(self.value, self.placeholder)


def _rows(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, (list, tuple)):
        return []
    return [row for row in value if isinstance(row, Mapping)]


# Row builders


def ingredient_rows(recipe: Mapping[str, Any]) -> list[list[str]]:
    return [
        [
            cell_text(item.get('name')),
            cell_text(item.get('quantity')),
            cell_text(item.get('unit')),
            cell_text(item.get('casNumber'), '-'),
            cell_text(item.get('notes'), '-'),
        ]
        for item in _rows(recipe.get('ingredients'))
    ]


def micronutrient_rows(recipe: Mapping[str, Any]) -> list[list[str]]:
    return [
        [
            cell_text(item.get('code')),
            cell_text(item.get('name')),
            cell_text(item.get('quantity')),
            cell_text(item.get('unit')),
            cell_text(item.get('category')),
        ]
        for item in _rows(recipe.get('micronutrients'))
    ]


def _batch_number(consumed: Mapping[str, Any], task: Mapping[str, Any]) -> str:
    batch_number = consumed.get('batchNumber') or consumed.get('lotNumber')
    if batch_number:
        return str(batch_number)
    batches = task.get('materialBatches')
    if isinstance(batches, Mapping):
        for batch in _rows(batches.get(consumed.get('materialId'))):
            if batch.get('batchId') == consumed.get('batchId') and batch.get('batchNumber'):
                return str(batch['batchNumber'])
    return '-'


def _quantity(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def consumed_material_rows(task: Mapping[str, Any], materials: Sequence[Mapping[str, Any]]) -> list[list[str]]:
    """One row per material and LOT; quantities from the same LOT are summed."""
    by_id = {(material.get('inventoryItemId') or material.get('id')): material for material in _rows(materials)}
    grouped: dict[tuple[Any, str], dict[str, Any]] = {}
    for consumed in _rows(task.get('consumedMaterials')):
        material = by_id.get(consumed.get('materialId')) or {}
        batch_number = _batch_number(consumed, task)
        key = (consumed.get('materialId'), batch_number)
        entry = grouped.get(key)
        if entry is None:
            entry = grouped[key] = {
                'name': consumed.get('materialName') or material.get('name') or 'Unknown material',
                'batch': batch_number,
                'quantity': 0.0,
                'unit': consumed.get('unit') or material.get('unit') or '-',
                'expiry': format_date(consumed.get('expiryDate')),
            }
        entry['quantity'] += _quantity(consumed.get('quantity') or consumed.get('consumedQuantity'))

    return [
        [
            str(entry['name']),
            entry['batch'],
            format_number(round(entry['quantity'], 3)),
            str(entry['unit']),
            entry['expiry'],
        ]
        for entry in grouped.values()
    ]


def document_rows(attachments: Sequence[Mapping[str, Any]]) -> list[list[str]]:
    return [
        [
            file_type_label(item.get('fileName')),
            cell_text(item.get('fileName'), '-'),
            format_file_size(item.get('size')),
            format_date(item.get('uploadedAt')),
        ]
        for item in _rows(attachments)
    ]


def physicochemical_rows(attachments: Sequence[Mapping[str, Any]]) -> list[list[str]]:
    return [
        [
            cell_text(item.get('fileName'), '-'),
            format_file_size(item.get('size')),
            cell_text(item.get('poNumber'), '-'),
            format_date(item.get('uploadedAt')),
        ]
        for item in _rows(attachments)
    ]


def batch_certificate_rows(grouped: Mapping[str, Sequence[Mapping[str, Any]]]) -> list[list[str]]:
    rows: list[list[str]] = []
    for ingredient, attachments in grouped.items():
        for item in _rows(attachments):
            source = 'Batch certificate' if item.get('source') == 'batch_certificate' else 'Batch document'
            rows.append(
                [
                    str(ingredient),
                    cell_text(item.get('batchNumber'), '-'),
                    cell_text(item.get('fileName'), '-'),
                    source,
                ]
            )
    return rows


def production_history_rows(history: Sequence[Mapping[str, Any]], unit: str) -> list[list[str]]:
    sessions = _rows(history)
    if not sessions:
        return []
    rows = [
        [
            format_datetime(session.get('startTime')),
            format_datetime(session.get('endTime')),
            f"{display_value(session.get('quantity'), '0')} {unit}",
            f"{format_number(session['timeSpent'])} min" if session.get('timeSpent') else '-',
        ]
        for session in sessions
    ]
    total_quantity = sum(_quantity(session.get('quantity')) for session in sessions)
    total_time = sum(_quantity(session.get('timeSpent')) for session in sessions)
    rows.append(['Total:', '', f'{total_quantity:.3f} {unit}', f'{format_number(total_time)} min'])
    return rows


def shift_rows(reports: Sequence[Mapping[str, Any]], unit: str) -> list[list[str]]:
    return [
        [
            format_datetime(report.get('fillDate')),
            display_value(report.get('responsiblePerson') or report.get('email'), NOT_PROVIDED),
            display_value(report.get('shiftWorkers'), '-'),
            f"{format_number(report['productionQuantity'])} {unit}" if report.get('productionQuantity') else '-',
        ]
        for report in _rows(reports)
    ]


def allergen_rows(allergens: Sequence[str]) -> list[list[str]]:
    return [[str(allergen), 'PRESENT'] for allergen in allergens]


# Field blocks


def _field_rows(fields: Sequence[FieldSpec]) -> list[tuple[FieldSpec, ...]]:
    """Pair consecutive single-line fields into two-column rows."""
    rows: list[tuple[FieldSpec, ...]] = []
    pending: FieldSpec | None = None
    for spec in fields:
        if spec.multiline:
            if pending is not None:
                rows.append((pending,))
                pending = None
            rows.append((spec,))
        elif pending is None:
            pending = spec
        else:
            rows.append((pending, spec))
            pending = None
    if pending is not None:
        rows.append((pending,))
    return rows


def estimate_fields(fields: Sequence[FieldSpec]) -> float:
    total = 0.0
    for row in _field_rows(fields):
        if len(row) == 2:
            total += estimate_two_column_height(row[0].text, row[1].text)
        else:
            total += estimate_field_height(row[0].text, multiline=row[0].multiline)
    return total


def render_fields(renderer: SectionRenderer, fields: Sequence[FieldSpec]) -> None:
    for row in _field_rows(fields):
        if len(row) == 2:
            left, right = row
            renderer.add_field_two_columns(left.label, left.text, right.label, right.text)
        else:
            renderer.add_field(row[0].label, row[0].text, multiline=row[0].multiline)


def _first_block_height(headers: Sequence[str], rows: Sequence[Sequence[str]], options: TableOptions | None = None) -> float:
    """Header row plus first data row, or the notice that replaces an empty table."""
    if not rows:
        return NOTICE_HEIGHT
    heights = table_row_heights(headers, rows[:1], options or TableOptions())
    return sum(heights)


# 1. Product identification


def product_identification_fields(ctx: ReportContext) -> list[FieldSpec]:
    task = ctx.task
    user = ctx.data.current_user
    return [
        FieldSpec('SKU', task.get('recipeName') or task.get('productName'), placeholder=NOT_SPECIFIED),
        FieldSpec('Version', task.get('recipeVersion') or '1'),
        FieldSpec(
            'Description',
            ctx.recipe.get('description') or task.get('description'),
            multiline=True,
            placeholder=NOT_SPECIFIED,
        ),
        FieldSpec('Report creation date', format_datetime(ctx.generated_at)),
        FieldSpec('User', user.get('displayName') or user.get('email') or 'Unknown user'),
    ]


def render_product_identification(renderer: SectionRenderer, ctx: ReportContext) -> None:
    fields = product_identification_fields(ctx)
    renderer.add_section_header_with_page_break(1, 'Product identification', estimate_fields(fields), '#1976d2')
    render_fields(renderer, fields)
    renderer.add_spacing(SECTION_GAP)


# 2. TDS specification


def render_specification(renderer: SectionRenderer, ctx: ReportContext) -> None:
    fields = [
        FieldSpec('Date', format_date(ctx.recipe.get('updatedAt'), 'No data')),
        FieldSpec('Expiration date', format_date(ctx.task.get('expiryDate'))),
    ]
    rows = micronutrient_rows(ctx.recipe)
    renderer.add_section_header_with_page_break(2, 'TDS Specification', estimate_fields(fields), '#ff9800')
    render_fields(renderer, fields)

    renderer.add_caption(
        'Microelements + Nutrition data:',
        keep_with_next=_first_block_height(MICRONUTRIENT_HEADERS, rows),
    )
    if rows:
        renderer.add_table(MICRONUTRIENT_HEADERS, rows)
    else:
        renderer.add_notice('No microelement or nutrition data for this recipe')
    renderer.add_spacing(SECTION_GAP)


# 3. Active ingredients


def render_active_ingredients(renderer: SectionRenderer, ctx: ReportContext) -> None:
    ingredients = ingredient_rows(ctx.recipe)
    first_block = _first_block_height(INGREDIENT_HEADERS, ingredients)
    renderer.add_section_header_with_page_break(3, 'Active Ingredients', SUBSECTION_HEADER_HEIGHT + first_block, '#4caf50')

    renderer.add_subsection_header_with_page_break('3.1', 'List of materials', first_block)
    renderer.add_table(INGREDIENT_HEADERS, ingredients)
    if ingredients:
        recipe_yield = ctx.recipe.get('yield') if isinstance(ctx.recipe.get('yield'), Mapping) else {}
        renderer.add_summary(
            f'Total ingredients: {len(ingredients)}',
            [
                f"Ingredients for {display_value(recipe_yield.get('quantity') or 1)} "
                f"{recipe_yield.get('unit') or 'pcs'} of product"
            ],
        )

    consumed = consumed_material_rows(ctx.task, ctx.data.materials)
    renderer.add_subsection_header_with_page_break(
        '3.2',
        'Expiration date of materials',
        _first_block_height(EXPIRY_HEADERS, consumed),
    )
    if consumed:
        renderer.add_table(EXPIRY_HEADERS, consumed)
        raw = _rows(ctx.task.get('consumedMaterials'))
        used_batches = {
            item.get('batchNumber') or item.get('lotNumber') or item.get('batchId')
            for item in raw
            if item.get('batchNumber') or item.get('lotNumber') or item.get('batchId')
        }
        renderer.add_summary(
            f'Summary: {len(raw)} consumed materials',
            [
                f"• With expiration date: {sum(1 for item in raw if item.get('expiryDate'))}",
                f'• Used batches: {len(used_batches)}',
            ],
        )
    else:
        renderer.add_notice('No consumed materials recorded for this task')

    clinical = document_rows(ctx.data.clinical_attachments)
    renderer.add_subsection_header_with_page_break(
        '3.3',
        'Clinical and bibliographic research',
        _first_block_height(DOCUMENT_HEADERS, clinical),
    )
    if clinical:
        renderer.add_table(DOCUMENT_HEADERS, clinical)
        total_size = sum(_quantity(item.get('size')) for item in ctx.data.clinical_attachments)
        renderer.add_summary(
            f'Total documents: {len(clinical)}',
            [f'Total size: {format_file_size(total_size)}'],
        )
    else:
        renderer.add_notice('No clinical research documents attached')
    renderer.add_spacing(SECTION_GAP)


# 4. Physicochemical properties


def render_physicochemical(renderer: SectionRenderer, ctx: ReportContext) -> None:
    grouped = {name: physicochemical_rows(rows) for name, rows in ctx.data.ingredient_attachments.items()}
    grouped = {name: rows for name, rows in grouped.items() if rows}
    certificates = batch_certificate_rows(ctx.data.ingredient_batch_attachments)

    if grouped:
        first_rows = next(iter(grouped.values()))
        first_block = CAPTION_HEIGHT + _first_block_height(PHYSICOCHEMICAL_HEADERS, first_rows, PHYSICOCHEMICAL_TABLE)
    else:
        first_block = NOTICE_HEIGHT
    renderer.add_section_header_with_page_break(4, 'Physicochemical properties', first_block, '#ffc107')

    if grouped:
        for ingredient, rows in grouped.items():
            renderer.add_caption(
                ingredient,
                color=ACCENT,
                gap_before=0.0,
                keep_with_next=_first_block_height(PHYSICOCHEMICAL_HEADERS, rows, PHYSICOCHEMICAL_TABLE),
            )
            renderer.add_table(PHYSICOCHEMICAL_HEADERS, rows, PHYSICOCHEMICAL_TABLE)

        attachments = [item for rows in ctx.data.ingredient_attachments.values() for item in rows]
        purchase_orders = {item.get('poNumber') for item in attachments if item.get('poNumber')}
        renderer.add_summary(
            'Physicochemical attachments summary:',
            [
                f'• Ingredients with attachments: {len(grouped)}',
                f'• Total attachments: {len(attachments)}',
                f'• Related purchase orders: {len(purchase_orders)}',
                f"• Total size: {format_file_size(sum(_quantity(item.get('size')) for item in attachments))}",
            ],
        )
    else:
        renderer.add_notice('No physicochemical attachments from related purchase orders')

    if certificates:
        renderer.add_caption(
            'Batch certificates:',
            keep_with_next=_first_block_height(BATCH_CERTIFICATE_HEADERS, certificates),
        )
        renderer.add_table(BATCH_CERTIFICATE_HEADERS, certificates)
    renderer.add_spacing(SECTION_GAP)


# 5. Production


def production_fields(ctx: ReportContext) -> list[FieldSpec]:
    history = ctx.data.production_history
    company = ctx.data.company
    workstation = ctx.data.workstation
    if history:
        start = format_datetime(history[0].get('startTime'))
        end = format_datetime(history[-1].get('endTime'))
    else:
        start = end = NO_PRODUCTION_HISTORY

    address = ' '.join(str(part) for part in (company.get('address'), company.get('city')) if part).strip()
    time_per_unit = ctx.task.get('productionTimePerUnit') or ctx.recipe.get('productionTimePerUnit')
    return [
        FieldSpec('Start date', start, multiline=True),
        FieldSpec('End date', end, multiline=True),
        FieldSpec('MO number', ctx.task.get('moNumber'), placeholder=NOT_SPECIFIED),
        FieldSpec('Company name', company.get('name'), placeholder=NOT_SPECIFIED),
        FieldSpec('Address', address, multiline=True, placeholder=NOT_SPECIFIED),
        FieldSpec(
            'Workstation',
            (workstation or {}).get('name'),
            placeholder='No workstation assigned',
        ),
        FieldSpec(
            'Time per unit',
            f'{format_number(time_per_unit)} min/pcs' if time_per_unit else None,
            placeholder=NOT_SPECIFIED,
        ),
    ]


def completed_mo_fields(report: Mapping[str, Any], unit: str) -> list[FieldSpec]:
    quantity = report.get('productQuantity')
    fields = [
        FieldSpec('Completion time', report.get('time')),
        FieldSpec('Responsible person', report.get('email')),
        FieldSpec('Final product quantity', f'{format_number(quantity)} {unit}' if quantity else None),
        FieldSpec('Packaging loss', report.get('packagingLoss'), placeholder='No loss'),
        FieldSpec('Lid loss', report.get('bulkLoss'), placeholder='No loss'),
        FieldSpec('Raw material loss', report.get('rawMaterialLoss'), multiline=True, placeholder='No loss'),
    ]
    if report.get('mixingPlanReportUrl'):
        fields.append(
            FieldSpec('Mixing plan report', report.get('mixingPlanReportName'), placeholder='Available (see digital copy)')
        )
    return fields


def render_production(renderer: SectionRenderer, ctx: ReportContext) -> None:
    fields = production_fields(ctx)
    renderer.add_section_header_with_page_break(5, 'Production', estimate_fields(fields), '#e91e63')
    # Start and end dates take a full line each.
    for spec in fields[:2]:
        renderer.add_field(spec.label, spec.text, multiline=spec.multiline)
    render_fields(renderer, fields[2:])

    history = production_history_rows(ctx.data.production_history, ctx.unit)
    renderer.add_caption('History of production:', keep_with_next=_first_block_height(HISTORY_HEADERS, history))
    if history:
        renderer.add_table(HISTORY_HEADERS, history)
    else:
        renderer.add_notice(NO_PRODUCTION_HISTORY)

    completed = ctx.data.form_responses.completed_mo
    if completed:
        renderer.add_caption('Report Data from Completed MO Forms:')
        for index, report in enumerate(completed, start=1):
            report_fields = completed_mo_fields(report, ctx.unit)
            renderer.pager.check_section_page_break(CAPTION_HEIGHT + estimate_fields(report_fields))
            renderer.add_caption(
                f"Report #{index} - {format_datetime(report.get('date'))}",
                color=ACCENT,
                font_size=9,
                gap_before=0.0,
            )
            render_fields(renderer, report_fields)
            renderer.add_spacing(4.0)

    shifts = shift_rows(ctx.data.form_responses.production_shift, ctx.unit)
    if shifts:
        renderer.add_caption('Production shift reports:', keep_with_next=_first_block_height(SHIFT_HEADERS, shifts))
        renderer.add_table(SHIFT_HEADERS, shifts)
    renderer.add_spacing(SECTION_GAP)


# 6. Quality control


def quality_control_groups(report: Mapping[str, Any], task: Mapping[str, Any]) -> list[tuple[str, list[FieldSpec]]]:
    shift_number = report.get('shiftNumber')
    groups: list[tuple[str, list[FieldSpec]]] = [
        (
            'Identification:',
            [
                FieldSpec('Name and surname', report.get('name')),
                FieldSpec('Position', report.get('position')),
                FieldSpec('Completion date', format_datetime(report.get('fillDate'))),
            ],
        ),
        (
            'Production control protocol:',
            [
                FieldSpec('Customer Order', report.get('customerOrder')),
                FieldSpec('Production start date', format_datetime(report.get('productionStartDate'))),
                FieldSpec('Production start time', report.get('productionStartTime')),
                FieldSpec('Production end date', format_datetime(report.get('productionEndDate'))),
                FieldSpec('Production end time', report.get('productionEndTime')),
                FieldSpec('Conditions reading date', format_datetime(report.get('readingDate'))),
                FieldSpec('Conditions reading time', report.get('readingTime')),
            ],
        ),
        (
            'Product data:',
            [
                FieldSpec('Product name', report.get('productName') or task.get('productName')),
                FieldSpec('LOT number', report.get('lotNumber')),
                FieldSpec('Expiration date (EXP)', report.get('expiryDate')),
                FieldSpec('Quantity (pcs)', f"{format_number(report['quantity'])} pcs" if report.get('quantity') else None),
                FieldSpec('Shift number', shift_number),
            ],
        ),
        (
            'Atmospheric conditions:',
            [
                FieldSpec('Air humidity', report.get('humidity')),
                FieldSpec('Air temperature', report.get('temperature')),
            ],
        ),
    ]

    controls = [
        FieldSpec('Raw material purity', report.get('rawMaterialPurity')),
        FieldSpec('Packaging purity', report.get('packagingPurity')),
        FieldSpec('Packaging closure', report.get('packagingClosure')),
        FieldSpec('Quantity on pallet', report.get('packagingQuantity')),
    ]
    additional = report.get('additionalControls')
    if isinstance(additional, Mapping):
        for key, value in additional.items():
            if isinstance(value, str) and value.strip():
                controls.append(FieldSpec(humanize_key(key), value))
    groups.append(('Quality control:', controls))

    attachments = [
        FieldSpec(label, report.get(name_key), placeholder='Available (see digital copy)')
        for url_key, name_key, label in QC_ATTACHMENT_FIELDS
        if report.get(url_key)
    ]
    if attachments:
        groups.append(('Attachments:', attachments))

    comments = report.get('comments') or report.get('notes')
    if comments:
        groups.append(('Comments/Notes:', [FieldSpec('Comments', comments, multiline=True)]))
    return groups


def _estimate_groups(groups: Sequence[tuple[str, Sequence[FieldSpec]]]) -> float:
    return sum(CAPTION_HEIGHT + 5.0 + estimate_fields(fields) for _, fields in groups)


def render_quality_control(renderer: SectionRenderer, ctx: ReportContext) -> None:
    reports = ctx.data.form_responses.production_control
    if reports:
        first_groups = quality_control_groups(reports[0], ctx.task)
        first_block = CAPTION_HEIGHT + _estimate_groups(first_groups[:1])
    else:
        first_block = NOTICE_HEIGHT
    renderer.add_section_header_with_page_break(6, 'Quality control', first_block, '#9c27b0')

    if not reports:
        renderer.add_notice('No quality control reports for this task')
        renderer.add_spacing(SECTION_GAP)
        return

    for index, report in enumerate(reports, start=1):
        groups = quality_control_groups(report, ctx.task)
        renderer.pager.check_section_page_break(CAPTION_HEIGHT + _estimate_groups(groups))
        renderer.add_caption(
            f"Control Report #{index} - {format_datetime(report.get('fillDate'))}",
            color=GREEN,
            gap_before=0.0,
        )
        for title, fields in groups:
            renderer.add_caption(title, color=ACCENT, keep_with_next=estimate_fields(fields[:2]))
            render_fields(renderer, fields)
        renderer.add_spacing(SECTION_GAP)
    renderer.add_spacing(SECTION_GAP)


# 7. Allergens


def render_allergens(renderer: SectionRenderer, ctx: ReportContext) -> None:
    rows = allergen_rows(ctx.data.allergens)
    intro = 'The following allergens are present in this product:'
    if rows:
        first_block = estimate_paragraph_height(intro) + estimate_table_height(ALLERGEN_HEADERS, rows, ALLERGEN_TABLE)
    else:
        first_block = NOTICE_HEIGHT
    renderer.add_section_header_with_page_break(7, 'Allergens', first_block, '#ff5722')

    if not rows:
        renderer.add_notice('No allergen information provided for this product')
        renderer.add_spacing(SECTION_GAP)
        return

    renderer.add_paragraph(intro, color=(85, 85, 85))
    renderer.add_table(ALLERGEN_HEADERS, rows, ALLERGEN_TABLE)
    renderer.add_summary(
        'ALLERGEN WARNING:',
        [
            'This product contains or may contain the allergens listed above.',
            'Please refer to product labeling for complete allergen information.',
        ],
        color=ORANGE,
    )
    renderer.add_spacing(SECTION_GAP)


# 8. Disclaimer


def disclaimer_blocks(company_name: str) -> list[tuple[str, Any]]:
    return [
        ('heading', 'DISCLAIMER & TERMS OF USE'),
        (
            'text',
            'This Technical Data Sheet (TDS) describes the typical properties of the product and has been '
            'prepared with due care based on our current knowledge, internal analyses, and data from our '
            'suppliers. The legally binding parameters for the product are defined in the agreed-upon Product '
            'Specification Sheet and confirmed for each batch in its respective Certificate of Analysis (CoA).',
        ),
        (
            'text',
            'Due to the natural variability of raw materials, minor batch-to-batch variations in non-critical '
            f'organoleptic or physical parameters may occur. {company_name} reserves the right to inform Clients '
            'of any significant deviations from the specifications. This provision does not apply to active '
            'ingredients, vitamins, minerals, or declared nutritional values, which must comply with labelling '
            'requirements under EU regulations.',
        ),
        (
            'text',
            "We are committed to continuous improvement and reserve the right to modify the product's "
            'specifications. The Buyer will be notified with reasonable advance notice of any changes, '
            'particularly those affecting mandatory labelling information or the composition of active ingredients.',
        ),
        ('heading', 'The Buyer is solely responsible for:'),
        (
            'bullets',
            [
                "Verifying the product's suitability for their specific application and manufacturing processes.",
                'Ensuring that their final product complies with all applicable laws and regulations.',
                'Maintaining full traceability in accordance with the requirements of EU food law.',
            ],
        ),
        (
            'text',
            'Where information regarding health claims authorized under Regulation (EC) No 1924/2006 is provided, '
            f'{company_name} shall not be held liable for any modifications or alterations of these claims made by '
            "the Buyer. It remains the Buyer's exclusive responsibility to ensure compliance with all applicable "
            'regulations concerning the use of such claims in final products.',
        ),
        (
            'text',
            f'{company_name} shall not be held liable for damages resulting from improper use, storage, or handling '
            'of the product, subject to applicable EU obligations on food safety and product liability directives.',
        ),
        (
            'text',
            'This document does not constitute a warranty and is subject to our official General Terms and '
            'Conditions of Sale, which govern all legal aspects of the transaction, including specific warranties, '
            'claims procedures, liability limitations, and force majeure provisions. In the event of any discrepancy '
            'between this TDS and our General Terms and Conditions of Sale, the latter shall prevail.',
        ),
        (
            'heading',
            'By purchasing the product, the Buyer accepts the conditions outlined in this document and confirms '
            'the receipt and acceptance of our General Terms and Conditions of Sale.',
        ),
    ]


def render_disclaimer(renderer: SectionRenderer, ctx: ReportContext) -> None:
    company_name = str(ctx.data.company.get('name') or 'The Manufacturer').strip()
    blocks = disclaimer_blocks(company_name)
    first_block = estimate_paragraph_height(blocks[0][1], font_name=FONT_BOLD, font_size=10) + estimate_paragraph_height(
        blocks[1][1]
    )
    renderer.add_section_header_with_page_break(8, 'Disclaimer & Terms of Use', first_block, '#d32f2f')

    for kind, content in blocks:
        if kind == 'heading':
            renderer.add_paragraph(content, bold=True, font_size=10 if content.isupper() else 9)
        elif kind == 'bullets':
            renderer.add_bullets(content)
        else:
            renderer.add_paragraph(content)
    renderer.add_spacing(SECTION_GAP)


# 9. Additional attachments


def render_additional_attachments(renderer: SectionRenderer, ctx: ReportContext) -> None:
    attachments = ctx.data.additional_attachments
    rows = document_rows(attachments)
    renderer.add_section_header_with_page_break(
        9,
        'Additional attachments',
        _first_block_height(DOCUMENT_HEADERS, rows),
        '#607d8b',
    )
    if not rows:
        renderer.add_notice('No additional attachments')
        return

    renderer.add_table(DOCUMENT_HEADERS, rows)
    renderer.add_summary(
        f'Total attachments: {len(rows)}',
        [
            f"Total size: {format_file_size(sum(_quantity(item.get('size')) for item in attachments))}",
            'PDF and image attachments are appended at the end of this report.',
        ],
    )


SECTIONS: tuple[Callable[[SectionRenderer, ReportContext], None], ...] = (
    render_product_identification,
    render_specification,
    render_active_ingredients,
    render_physicochemical,
    render_production,
    render_quality_control,
    render_allergens,
    render_disclaimer,
    render_additional_attachments,
)
