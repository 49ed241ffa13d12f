"""
Box geometry conversion.

Detectors report boxes as corner pairs [x1, y1, x2, y2].
Everything stored by this service uses [center_x, center_y, width, height].
"""

from typing import List, Sequence


def corners_to_center(box: Sequence[float]) -> List[float]:
    """
    Convert a corner-pair box to center/size form.
    
    Boxes that do not have exactly four values are returned unchanged.
    There is no check for already-converted input, so never apply this
    twice to the same box.
    
    Args:
        box: [x1, y1, x2, y2]
        
    Returns:
        [center_x, center_y, width, height]
    """
    if len(box) != 4:
        return list(box)
    
    x1, y1, x2, y2 = (float(v) for v in box)
    return [
        (x1 + x2) / 2.0,
        (y1 + y2) / 2.0,
        abs(x2 - x1),
        abs(y2 - y1),
    ]
