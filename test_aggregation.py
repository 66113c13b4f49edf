"""
Tests for mask building, the persistent inventory, and manual edits.
"""

import pytest

from naturewatch import (
    Detection, Frame, InventoryEntry, Point,
    add_mask, apply_detections, box_to_polygon, count_objects, delete_mask,
    filter_detections, polygon_bbox, update_inventory, update_mask,
)


def det(label, confidence, box=(0, 0, 10, 10), category="static"):
    return Detection(label=label, confidence=confidence, box=box, category=category)


def test_box_to_polygon_is_clockwise_from_top_left():
    polygon = box_to_polygon((10, 10, 50, 30))

    assert polygon == [Point(10, 10), Point(60, 10), Point(60, 40), Point(10, 40)]
    assert polygon_bbox(polygon) == [10, 10, 50, 30]


def test_bbox_of_arbitrary_polygon():
    points = [Point(5, 8), Point(20, 2), Point(14, 30), Point(1, 12)]
    assert polygon_bbox(points) == [1, 2, 19, 28]


def test_threshold_is_strict():
    kept = filter_detections([det("a", 0.5), det("b", 0.51), det("c", 0.2)])
    assert [d.label for d in kept] == ["b"]


def test_apply_detections_builds_masks_and_parallel_lists():
    frame = Frame("frame-3", 0.3)
    detections = [
        det("bear", 0.9, (100, 100, 200, 150), "dynamic"),
        det("tree", 0.3, (300, 50, 100, 300)),
        det("tree", 0.97, (450, 75, 120, 280)),
    ]

    updated = apply_detections(frame, detections)

    masks = updated.segmentation.masks
    assert [m.id for m in masks] == ["mask-0", "mask-1"]
    assert updated.segmentation.labels == ["bear", "tree"]
    assert updated.segmentation.confidence == [0.9, 0.97]
    assert masks[0].category == "dynamic"
    assert masks[0].points == box_to_polygon((100, 100, 200, 150))
    assert frame.segmentation.masks == []


def test_apply_detections_replaces_previous_segmentation():
    frame = apply_detections(Frame("frame-0", 0.0), [det("bear", 0.9)])
    frame = apply_detections(frame, [det("deer", 0.8)])

    assert frame.segmentation.labels == ["deer"]


def test_inventory_overwrites_per_frame():
    inventory = update_inventory({}, [det("tree", 0.9), det("tree", 0.7), det("bear", 0.8)])
    assert inventory == {
        "tree": InventoryEntry(count=2, last_confidence=0.7),
        "bear": InventoryEntry(count=1, last_confidence=0.8),
    }

    inventory = update_inventory(inventory, [det("tree", 0.6)])
    assert inventory["tree"] == InventoryEntry(count=1, last_confidence=0.6)


def test_confidently_seen_label_persists_while_absent():
    frame_n = update_inventory({}, [det("bear", 0.9)])
    frame_n1 = update_inventory(frame_n, [])
    frame_n2 = update_inventory(frame_n1, [det("deer", 0.7)])

    assert frame_n1["bear"] == InventoryEntry(count=1, last_confidence=0.9)
    assert frame_n2["bear"] == InventoryEntry(count=1, last_confidence=0.9)
    assert frame_n2["deer"].count == 1


def test_low_confidence_entries_are_dropped_and_never_added():
    prev = {"fox": InventoryEntry(count=1, last_confidence=0.4)}

    inventory = update_inventory(prev, [det("owl", 0.45)])

    assert inventory == {}


def test_add_mask_uses_hand_drawn_defaults():
    points = [Point(0, 0), Point(10, 0), Point(5, 8)]
    frame = add_mask(Frame("frame-0", 0.0), points, mask_id="mask-user")

    mask = frame.segmentation.masks[0]
    assert (mask.id, mask.label, mask.confidence, mask.category) == ("mask-user", "New Object", 1.0, "static")
    assert frame.segmentation.labels == ["New Object"]


def test_add_mask_requires_a_polygon():
    with pytest.raises(ValueError):
        add_mask(Frame("frame-0", 0.0), [Point(0, 0), Point(1, 1)])


def test_add_mask_generates_unique_ids():
    points = [Point(0, 0), Point(10, 0), Point(5, 8)]
    frame = add_mask(add_mask(Frame("frame-0", 0.0), points), points)

    ids = [m.id for m in frame.segmentation.masks]
    assert len(set(ids)) == 2


def test_update_mask_changes_only_given_fields():
    frame = apply_detections(Frame("frame-0", 0.0), [det("bear", 0.9, category="dynamic")])

    frame = update_mask(frame, "mask-0", label="grizzly", confidence=0.75)

    mask = frame.segmentation.masks[0]
    assert (mask.label, mask.confidence, mask.category) == ("grizzly", 0.75, "dynamic")
    assert frame.segmentation.confidence == [0.75]


@pytest.mark.parametrize("changes", [
    {'category': 'flying'},
    {'confidence': 1.2},
    {'points': [Point(0, 0)]},
])
def test_update_mask_validates(changes):
    frame = apply_detections(Frame("frame-0", 0.0), [det("bear", 0.9)])
    with pytest.raises(ValueError):
        update_mask(frame, "mask-0", **changes)


def test_delete_mask():
    frame = apply_detections(Frame("frame-0", 0.0), [det("bear", 0.9), det("tree", 0.8)])

    frame = delete_mask(frame, "mask-0")

    assert frame.segmentation.labels == ["tree"]
    with pytest.raises(KeyError):
        delete_mask(frame, "mask-0")


def test_count_objects():
    frame = apply_detections(Frame("frame-0", 0.0), [
        det("bear", 0.9, category="dynamic"),
        det("tree", 0.8),
        det("tree", 0.7),
    ])

    assert count_objects(frame.segmentation.masks) == {
        'static': {'tree': 2},
        'dynamic': {'bear': 1},
        'total': 3,
    }
