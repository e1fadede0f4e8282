"""Tests for the three annotation parsers and the parser factory."""

from __future__ import annotations

import json
import math

import numpy as np
import pytest

from conftest import (
    CALIB_TEXT,
    CAR_CENTER_VELO,
    CAR_LINE,
    make_figure,
    make_supervisely_document,
)
from core.annotations import KittiLabelParser, PhillyLabelParser, SuperviselyParser, split_label_line
from core.base import BaseAnnotationParser
from core.calib import KittiCalib
from core.errors import KittiParseError, ObjectLookupError
from core.factory import AnnotationParserFactory
from utils.config import Config
from utils.geometry import rotation_from_euler


@pytest.fixture
def calib():
    return KittiCalib.from_text(CALIB_TEXT)


@pytest.fixture
def label_file(tmp_path):
    def _write(lines):
        path = tmp_path / "000000.txt"
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


class TestSplitLabelLine:

    def test_fields(self):
        fields = split_label_line(CAR_LINE)
        assert fields.class_name == "Car"
        assert fields.dimensions == [1.5, 1.6, 3.8]
        assert fields.location == [5.0, 1.7, 30.0]
        assert fields.rotation_y == pytest.approx(1.57)
        assert fields.score is None

    def test_2d_box_uses_left_top_right_bottom(self):
        # fields 4-7 are left=10 top=20 right=110 bottom=220
        fields = split_label_line(CAR_LINE)
        assert fields.bbox2d.tlhw() == [20.0, 10.0, 200.0, 100.0]

    def test_score(self):
        assert split_label_line(CAR_LINE + " 0.93").score == pytest.approx(0.93)

    def test_too_few_fields(self):
        with pytest.raises(KittiParseError):
            split_label_line("Car 0 0 0 10 20 110 220 1.5 1.6 3.8 5 1.7 30")

    def test_non_numeric(self):
        with pytest.raises(KittiParseError):
            split_label_line("Car 0 0 0 10 20 110 220 tall 1.6 3.8 5 1.7 30 1.57")


class TestKittiLabelParser:

    def test_end_to_end_line(self, calib, label_file):
        objects = KittiLabelParser().parse(label_file([CAR_LINE]), calib)
        assert len(objects) == 1
        obj = objects[0]
        assert obj.class_name == "Car"
        np.testing.assert_allclose(obj.bbox3d.extents, [3.8, 1.6, 1.5])
        assert obj.bbox2d.w == pytest.approx(100.0)
        assert obj.score is None
        assert obj.object_key is None

    def test_center_is_lifted_and_transformed(self, calib, label_file):
        obj = KittiLabelParser().parse(label_file([CAR_LINE]), calib)[0]
        np.testing.assert_allclose(obj.bbox3d.center, CAR_CENTER_VELO, atol=1e-12)

    def test_yaw_convention(self, calib, label_file):
        obj = KittiLabelParser().parse(label_file([CAR_LINE]), calib)[0]
        expected = rotation_from_euler(0.0, 0.0, -1.57 - math.pi / 2)
        np.testing.assert_allclose(obj.bbox3d.pose.rotation, expected, atol=1e-12)

    def test_excluded_classes_are_skipped(self, calib, label_file):
        parser = KittiLabelParser(exclude_classes=["DontCare"])
        path = label_file(["DontCare -1 -1 -10 0 0 10 10 -1 -1 -1 -1000 -1000 -1000 -10", CAR_LINE])
        objects = parser.parse(path, calib)
        assert [o.class_name for o in objects] == ["Car"]

    def test_excluded_line_is_not_validated(self, calib, label_file):
        parser = KittiLabelParser(exclude_classes=["DontCare"])
        assert parser.parse(label_file(["DontCare garbage"]), calib) == []

    def test_blank_lines(self, calib, label_file):
        assert len(KittiLabelParser().parse(label_file(["", CAR_LINE, "   "]), calib)) == 1

    def test_requires_calib(self, label_file):
        with pytest.raises(ValueError):
            KittiLabelParser().parse(label_file([CAR_LINE]))

    def test_missing_file(self, calib, tmp_path):
        with pytest.raises(FileNotFoundError):
            KittiLabelParser().parse(tmp_path / "missing.txt", calib)

    def test_parse_error_reports_line(self, calib, label_file):
        path = label_file([CAR_LINE, "Car 0 0 0 10 20 110 220 x 1.6 3.8 5 1.7 30 1.57"])
        with pytest.raises(KittiParseError) as exc_info:
            KittiLabelParser().parse(path, calib)
        assert exc_info.value.line_no == 2


class TestPhillyLabelParser:

    def test_pose_is_not_transformed(self, label_file):
        obj = PhillyLabelParser().parse(label_file([CAR_LINE]))[0]
        np.testing.assert_allclose(obj.bbox3d.center, [5.0, 1.7, 30.0])
        np.testing.assert_allclose(obj.bbox3d.pose.rotation, rotation_from_euler(0.0, 0.0, 1.57), atol=1e-12)

    def test_extents_keep_file_order(self, label_file):
        obj = PhillyLabelParser().parse(label_file([CAR_LINE]))[0]
        np.testing.assert_allclose(obj.bbox3d.extents, [1.5, 1.6, 3.8])

    def test_calib_is_ignored(self, calib, label_file):
        a = PhillyLabelParser().parse(label_file([CAR_LINE]), calib)[0]
        b = PhillyLabelParser().parse(label_file([CAR_LINE]))[0]
        assert a.bbox3d == b.bbox3d

    def test_shares_2d_box_and_score(self, label_file):
        obj = PhillyLabelParser().parse(label_file([CAR_LINE + " 0.4"]))[0]
        assert obj.bbox2d.tlbr() == [20.0, 10.0, 220.0, 110.0]
        assert obj.score == pytest.approx(0.4)


class TestSuperviselyParser:

    def _objects(self, tags=None):
        return [{"key": "obj-a", "classTitle": "Car", "tags": tags or []}]

    def test_geometry_convention(self):
        doc = make_supervisely_document(
            [make_figure("obj-a", position=(1.0, 2.0, 3.0), rotation=(0.1, 0.2, 0.3), dimensions=(4.0, 2.0, 1.5))],
            self._objects(),
        )
        obj = SuperviselyParser().parse_document(doc)[0]
        np.testing.assert_allclose(obj.bbox3d.extents, [2.0, 1.5, 4.0])
        np.testing.assert_allclose(obj.bbox3d.center, [1.0, 2.0, 3.0])
        np.testing.assert_allclose(
            obj.bbox3d.pose.rotation, rotation_from_euler(0.1, 0.2, 0.3 + math.pi / 2), atol=1e-12
        )
        assert obj.bbox2d.tlhw() == [0.0, 0.0, 0.0, 0.0]
        assert obj.class_name == "Car"
        assert obj.object_key == "obj-a"

    def test_confidence_text_tag(self):
        doc = make_supervisely_document(
            [make_figure("obj-a")], self._objects([{"name": "Confidence", "value": "0.25"}])
        )
        assert SuperviselyParser().parse_document(doc)[0].score == pytest.approx(0.25)

    def test_confidence_defaults_to_one(self):
        doc = make_supervisely_document([make_figure("obj-a")], self._objects([{"name": "Occluded", "value": "no"}]))
        assert SuperviselyParser().parse_document(doc)[0].score == 1.0

    @pytest.mark.parametrize("value", [0.3, None, ["0.3"]])
    def test_confidence_non_text_value(self, value):
        doc = make_supervisely_document([make_figure("obj-a")], self._objects([{"name": "Confidence", "value": value}]))
        assert SuperviselyParser().parse_document(doc)[0].score == 1.0

    def test_confidence_unparseable_text(self):
        doc = make_supervisely_document(
            [make_figure("obj-a")], self._objects([{"name": "Confidence", "value": "high"}])
        )
        with pytest.raises(KittiParseError):
            SuperviselyParser().parse_document(doc)

    def test_missing_object_key(self):
        doc = make_supervisely_document([make_figure("obj-missing")], self._objects())
        with pytest.raises(ObjectLookupError) as exc_info:
            SuperviselyParser().parse_document(doc)
        assert exc_info.value.object_key == "obj-missing"

    def test_one_object_per_figure(self):
        doc = make_supervisely_document([make_figure("obj-a"), make_figure("obj-a")], self._objects())
        assert len(SuperviselyParser().parse_document(doc)) == 2

    def test_malformed_geometry(self):
        figure = make_figure("obj-a")
        del figure["geometry"]["dimensions"]
        with pytest.raises(KittiParseError):
            SuperviselyParser().parse_document(make_supervisely_document([figure], self._objects()))

    @pytest.mark.parametrize("class_title", [None, "", 3])
    def test_missing_class_title(self, class_title):
        objects = [{"key": "obj-a", "tags": []}]
        if class_title is not None:
            objects[0]["classTitle"] = class_title
        doc = make_supervisely_document([make_figure("obj-a")], objects)
        with pytest.raises(KittiParseError):
            SuperviselyParser().parse_document(doc)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "000000.pcd.json"
        path.write_text("{not json")
        with pytest.raises(KittiParseError):
            SuperviselyParser().parse(path)

    def test_parse_file(self, tmp_path):
        path = tmp_path / "000000.pcd.json"
        path.write_text(json.dumps(make_supervisely_document([make_figure("obj-a")], self._objects())))
        assert len(SuperviselyParser().parse(path)) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SuperviselyParser().parse(tmp_path / "000000.pcd.json")


class TestAnnotationParserFactory:

    def test_available(self):
        assert set(AnnotationParserFactory.get_available_parsers()) >= {"kitti", "philly", "supervisely"}

    def test_create(self):
        parser = AnnotationParserFactory.create_parser("philly", ["DontCare"])
        assert isinstance(parser, PhillyLabelParser)
        assert parser.exclude_classes == frozenset({"DontCare"})

    def test_unknown(self):
        with pytest.raises(ValueError):
            AnnotationParserFactory.create_parser("pascal")

    def test_register_rejects_duplicates_and_non_parsers(self):
        with pytest.raises(ValueError):
            AnnotationParserFactory.register_parser("kitti", KittiLabelParser)
        with pytest.raises(ValueError):
            AnnotationParserFactory.register_parser("other", dict)

    def test_register_new_parser(self):
        class EmptyParser(BaseAnnotationParser):
            def parse(self, ann_path, calib=None):
                return []

        AnnotationParserFactory.register_parser("empty-test", EmptyParser)
        try:
            assert isinstance(AnnotationParserFactory.create_parser("empty-test"), EmptyParser)
        finally:
            AnnotationParserFactory._parsers.pop("empty-test")

    def test_external_dir_overrides_label_format(self, tmp_path):
        config = Config.from_dict(
            {"kitti_dir": str(tmp_path), "supervisely_ann_dir": str(tmp_path), "label_format": "philly"}
        )
        assert isinstance(AnnotationParserFactory.create_from_config(config), SuperviselyParser)

    def test_label_format_selects_text_parser(self, tmp_path):
        config = Config.from_dict({"kitti_dir": str(tmp_path), "label_format": "philly"})
        assert isinstance(AnnotationParserFactory.create_from_config(config), PhillyLabelParser)
