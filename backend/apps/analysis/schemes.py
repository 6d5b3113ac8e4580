"""
Categorical classification schemes.

A scheme pairs class names with display colors and maps raw source codes onto
the dense 1..N class index used for display and area statistics.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class ClassificationScheme:
    names: Tuple[str, ...]
    colors: Tuple[str, ...]
    remap: Dict[int, int] = field(default_factory=dict)

    def __post_init__(self):
        if len(self.names) != len(self.colors):
            raise ValueError(
                f"Classification scheme has {len(self.names)} names "
                f"but {len(self.colors)} colors"
            )
        for raw, dense in self.remap.items():
            if not 1 <= dense <= len(self.names):
                raise ValueError(
                    f"Remap target {dense} for source code {raw} is outside "
                    f"[1, {len(self.names)}]"
                )

    def __len__(self):
        return len(self.names)

    def class_name(self, class_id: int) -> str:
        return self.names[class_id - 1]

    def class_color(self, class_id: int) -> str:
        return self.colors[class_id - 1]

    def remapper(self, band="classification"):
        from .transforms import CategoricalRemap

        source_codes = sorted(self.remap)
        return CategoricalRemap(
            source_codes=tuple(source_codes),
            target_codes=tuple(self.remap[c] for c in source_codes),
            band=band,
        )


# Esri 10m Annual Land Use Land Cover (codes 3 and 6 are unused by the product)
ESRI_LULC_SCHEME = ClassificationScheme(
    names=(
        "Water",
        "Trees",
        "Flooded Vegetation",
        "Crops",
        "Built Area",
        "Bare Ground",
        "Snow/Ice",
        "Clouds",
        "Rangeland",
    ),
    colors=(
        "#1A5BAB",
        "#358221",
        "#87D19E",
        "#FFDB5C",
        "#ED022A",
        "#EDE9E4",
        "#F2FAFF",
        "#C8C8C8",
        "#C6AD8D",
    ),
    remap={1: 1, 2: 2, 4: 3, 5: 4, 7: 5, 8: 6, 9: 7, 10: 8, 11: 9},
)
