"""Pytest configuration and shared fixtures."""

import pytest


def make_design(layer, pole_stress=None, class_of_pole="3", height_m=12.192, species="Southern Pine"):
    """A SPIDAcalc design with one analysis case."""
    design = {
        "label": f"{layer} Design",
        "layerType": layer,
        "structure": {
            "pole": {
                "clientItem": {
                    "classOfPole": class_of_pole,
                    "height": {"unit": "METRE", "value": height_m},
                    "species": species,
                },
            },
        },
        "analysis": [],
    }
    if pole_stress is not None:
        design["analysis"].append({
            "id": "NESC Light",
            "results": [
                {"component": "Anchor", "analysisType": "FORCE", "actual": 99.0},
                {"component": "Pole", "analysisType": "STRESS", "actual": pole_stress, "passes": pole_stress <= 100},
            ],
        })
    return design


def make_location(label, existing=None, final=None, **extra):
    loc = {
        "label": label,
        "designs": [
            make_design("Measured", existing),
            make_design("Recommended", final),
        ],
    }
    loc.update(extra)
    return loc


@pytest.fixture
def spida_doc():
    """Two poles in one lead, both with measured and recommended designs."""
    return {
        "label": "JOB-2024-117",
        "date": "2024-03-05",
        "engineer": "T. Rivera",
        "clientData": {"generalLocation": "Main St between 1st and 3rd"},
        "address": {"city": "San Antonio"},
        "leads": [
            {
                "locations": [
                    make_location(
                        "1-PL100", existing=60.0, final=70.0,
                        geographicCoordinate={"type": "Point", "coordinates": [-98.4936, 29.4241]},
                        remedies=[{"description": "Lower comm 12in"}],
                    ),
                    make_location("2-PL200", existing=45.5, final=88.25),
                ],
            },
        ],
    }


@pytest.fixture
def katapult_rows():
    """Spreadsheet rows as produced by the Katapult reader."""
    return [
        {
            "node_type": "pole", "scid": 1, "PL_number": "PL100",
            "pole_height": "40", "pole_class": "3", "pole_species": "SPC",
            "existing_capacity_%": "58.2%", "final_passing_capacity_%": 0.7,
        },
        {
            "node_type": "pole", "scid": 2, "PL_number": "PL200",
            "pole_height": "40", "pole_class": "3", "pole_species": "Southern Pine",
            "existing_capacity_%": 45.5, "final_passing_capacity_%": 88.25,
        },
        {
            "node_type": "reference", "scid": 3, "PL_number": "PL300",
        },
        {
            "node_type": "pole", "scid": 4, "PL_number": "PL400",
            "pole_spec": "45-4 Southern Pine",
            "existing_capacity_%": 30, "final_passing_capacity_%": 41,
        },
    ]
