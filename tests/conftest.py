from __future__ import annotations

from datetime import datetime

import pytest

from endreport.config import Settings
from endreport.report.canvas import PageCanvas
from endreport.report.pagination import PaginationController
from endreport.report.renderer import SectionRenderer
from endreport.types import ReportInput

from tests.samples import GENERATED_AT


@pytest.fixture
def generated_at() -> datetime:
    return GENERATED_AT


@pytest.fixture
def settings() -> Settings:
    return Settings(
        template_source=None,
        attachment_timeout_seconds=5.0,
        attachment_deadline_seconds=None,
        attachment_max_concurrency=1,
    )


@pytest.fixture
def renderer() -> SectionRenderer:
    canvas = PageCanvas()
    pager = PaginationController(canvas)
    pager.start()
    return SectionRenderer(pager)


@pytest.fixture
def mo42_input() -> ReportInput:
    return ReportInput.model_validate(
        {
            'task': {
                'id': 'task-42',
                'moNumber': 'MO-42',
                'productName': 'Vitamin C 500',
                'recipe': {'ingredients': [{'name': 'VitC', 'quantity': 500, 'unit': 'mg'}]},
            },
            'productionHistory': [],
        }
    )


@pytest.fixture
def full_input() -> ReportInput:
    return ReportInput.model_validate(
        {
            'task': {
                'id': 'task-7',
                'moNumber': 'MO-7',
                'productName': 'Magnesium Complex',
                'recipeName': 'MAG-COMPLEX-60',
                'recipeVersion': '3',
                'unit': 'pcs',
                'expiryDate': '2026-01-31',
                'productionTimePerUnit': 1.5,
                'recipe': {
                    'description': 'Magnesium citrate capsules with vitamin B6 for daily supplementation.',
                    'updatedAt': {'seconds': 1700000000, 'nanoseconds': 0},
                    'yield': {'quantity': 60, 'unit': 'caps'},
                    'ingredients': [
                        {'name': 'Magnesium citrate', 'quantity': 350, 'unit': 'mg', 'casNumber': '7779-25-1'},
                        {'name': 'Vitamin B6', 'quantity': 1.4, 'unit': 'mg'},
                    ],
                    'micronutrients': [
                        {'code': 'MG', 'name': 'Magnesium', 'quantity': 56, 'unit': 'mg', 'category': 'Mineral'},
                    ],
                },
                'consumedMaterials': [
                    {'materialId': 'm1', 'batchNumber': 'LOT-1', 'quantity': 2, 'expiryDate': '2025-06-01'},
                    {'materialId': 'm1', 'batchNumber': 'LOT-1', 'quantity': 3, 'expiryDate': '2025-06-01'},
                    {'materialId': 'm2', 'batchNumber': 'LOT-9', 'quantity': 0.5},
                ],
            },
            'companyData': {'name': 'Acme Labs', 'address': 'Main St 1', 'city': 'Gdansk'},
            'workstationData': {'name': 'Line A'},
            'productionHistory': [
                {'startTime': '2024-03-01T08:00:00Z', 'endTime': '2024-03-01T12:00:00Z', 'quantity': 100, 'timeSpent': 240},
                {'startTime': '2024-03-02T08:00:00Z', 'endTime': '2024-03-02T10:00:00Z', 'quantity': 50, 'timeSpent': 120},
            ],
            'formResponses': {
                'completedMO': [
                    {'date': '2024-03-02T10:05:00Z', 'time': '10:05', 'email': 'op@acme.test', 'productQuantity': 150},
                ],
                'productionControl': [
                    {
                        'fillDate': '2024-03-02T11:00:00Z',
                        'name': 'Jan Kowalski',
                        'position': 'QC',
                        'lotNumber': 'LOT-FINAL',
                        'quantity': 150,
                        'temperature': '21 C',
                        'additionalControls': {'capsuleWeight': 'OK'},
                    },
                ],
                'productionShift': [
                    {'fillDate': '2024-03-01T16:00:00Z', 'responsiblePerson': 'Anna', 'shiftWorkers': ['Anna', 'Piotr'], 'productionQuantity': 100},
                ],
            },
            'materials': [
                {'id': 'm1', 'name': 'Magnesium citrate', 'unit': 'kg'},
                {'id': 'm2', 'name': 'Pyridoxine', 'unit': 'kg'},
            ],
            'clinicalAttachments': [
                {'fileName': 'study.pdf', 'size': 2048, 'uploadedAt': '2024-01-10', 'downloadURL': 'https://files.test/study.pdf'},
            ],
            'ingredientAttachments': {
                'Magnesium citrate': [
                    {'fileName': 'coa-mg.pdf', 'size': 1536, 'poNumber': 'PO-1', 'downloadURL': 'https://files.test/coa-mg.pdf'},
                ],
            },
            'ingredientBatchAttachments': {
                'Magnesium citrate': [{'fileName': 'lot1.pdf', 'batchNumber': 'LOT-1', 'source': 'batch_certificate'}],
            },
            'additionalAttachments': [
                {'fileName': 'label.png', 'size': 300, 'downloadURL': 'https://files.test/label.png'},
            ],
            'selectedAllergens': ['Soy'],
            'currentUser': {'displayName': 'Report Author'},
        }
    )
