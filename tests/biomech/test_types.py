"""Validation of the static model records."""

import pytest

from poseforge.biomech.types import (
    Axis, BiomechModel, Coordinate, Joint, JointKind, RotationOrder, Segment,
    SegmentSource, Side,
)


def _c(joint_id="j", cid="c", axis="X", index=0, lo=-1.0, hi=1.0, **kw) -> Coordinate:
    return Coordinate(id=cid, joint_id=joint_id, display_name=cid, axis=Axis(axis),
                      index=index, range_min=lo, range_max=hi, **kw)


def _segments():
    return {
        "a": Segment(id="a", display_name="A", node_name="bone_a"),
        "b": Segment(id="b", display_name="B", node_name="bone_b"),
    }


class TestRotationOrder:
    def test_axis_at_and_index_of(self):
        order = RotationOrder.ZXY
        assert [order.axis_at(i) for i in range(3)] == [Axis.Z, Axis.X, Axis.Y]
        assert order.index_of(Axis.Y) == 2


class TestSegment:
    def test_rig_bound_needs_node(self):
        with pytest.raises(ValueError):
            Segment(id="s", display_name="S")

    def test_virtual_cannot_name_node(self):
        with pytest.raises(ValueError):
            Segment(id="s", display_name="S", source=SegmentSource.VIRTUAL, node_name="bone")

    def test_rig_bound_cannot_have_parent(self):
        with pytest.raises(ValueError):
            Segment(id="s", display_name="S", node_name="bone", parent_segment_id="t")

    def test_side_from_id(self):
        assert Segment(id="femur_left", display_name="", node_name="x").side is Side.LEFT
        assert Segment(id="femur_right", display_name="", node_name="x").side is Side.RIGHT
        assert Segment(id="pelvis", display_name="", node_name="x").side is Side.CENTER


class TestCoordinate:
    def test_range_must_be_ordered(self):
        with pytest.raises(ValueError):
            _c(lo=1.0, hi=-1.0)

    def test_index_must_be_0_1_2(self):
        with pytest.raises(ValueError):
            _c(index=3)

    def test_in_range_inclusive(self):
        c = _c(lo=-0.5, hi=0.5)
        assert c.in_range(0.5)
        assert c.in_range(-0.5)
        assert not c.in_range(0.51)


class TestJoint:
    def test_axis_must_match_order_position(self):
        # In ZXY, X lives at index 1, not 0
        with pytest.raises(ValueError, match="declares axis X"):
            Joint(id="j", display_name="J", parent_segment="a", child_segment="b",
                  kind=JointKind.BALL, order=RotationOrder.ZXY,
                  coordinates=[_c(axis="X", index=0)])

    def test_list_order_is_free(self):
        j = Joint(id="j", display_name="J", parent_segment="a", child_segment="b",
                  kind=JointKind.BALL, order=RotationOrder.ZXY,
                  coordinates=[_c(cid="y", axis="Y", index=2), _c(cid="z", axis="Z", index=0)])
        assert isinstance(j.coordinates, tuple)
        assert j.coordinate_at(0).id == "z"
        assert j.coordinate_at(1) is None
        assert j.dof == 2

    def test_parent_and_child_distinct(self):
        with pytest.raises(ValueError):
            Joint(id="j", display_name="J", parent_segment="a", child_segment="a",
                  kind=JointKind.FIXED, order=RotationOrder.XYZ)

    def test_duplicate_index_rejected(self):
        with pytest.raises(ValueError, match="share index"):
            Joint(id="j", display_name="J", parent_segment="a", child_segment="b",
                  kind=JointKind.BALL, order=RotationOrder.XYZ,
                  coordinates=[_c(cid="p", axis="X", index=0), _c(cid="q", axis="X", index=0)])

    def test_duplicate_id_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            Joint(id="j", display_name="J", parent_segment="a", child_segment="b",
                  kind=JointKind.BALL, order=RotationOrder.XYZ,
                  coordinates=[_c(cid="p", axis="X", index=0), _c(cid="p", axis="Y", index=1)])

    def test_foreign_coordinate_rejected(self):
        with pytest.raises(ValueError, match="belongs to"):
            Joint(id="j", display_name="J", parent_segment="a", child_segment="b",
                  kind=JointKind.HINGE, order=RotationOrder.XYZ,
                  coordinates=[_c(joint_id="other")])

    @pytest.mark.parametrize("kind,count", [
        (JointKind.HINGE, 2),
        (JointKind.UNIVERSAL, 1),
        (JointKind.CUSTOM_3DOF, 2),
        (JointKind.FIXED, 1),
        (JointKind.BALL, 0),
    ])
    def test_dof_count_per_kind(self, kind, count):
        coords = [_c(cid=f"c{i}", axis="XYZ"[i], index=i) for i in range(count)]
        with pytest.raises(ValueError, match="coordinates"):
            Joint(id="j", display_name="J", parent_segment="a", child_segment="b",
                  kind=kind, order=RotationOrder.XYZ, coordinates=coords)


class TestBiomechModel:
    def _joint(self, jid="j", parent="a", child="b", cid="c"):
        return Joint(id=jid, display_name=jid, parent_segment=parent, child_segment=child,
                     kind=JointKind.HINGE, order=RotationOrder.XYZ,
                     coordinates=[_c(joint_id=jid, cid=cid)])

    def test_unknown_segment_rejected(self):
        with pytest.raises(ValueError, match="unknown segment"):
            BiomechModel(id="m", segments=_segments(),
                         joints={"j": self._joint(child="zz")}, root_segment="a")

    def test_coordinate_ids_globally_unique(self):
        segs = _segments()
        segs["c"] = Segment(id="c", display_name="C", node_name="bone_c")
        with pytest.raises(ValueError, match="more than one joint"):
            BiomechModel(id="m", segments=segs, root_segment="a", joints={
                "j1": self._joint("j1", "a", "b", cid="dup"),
                "j2": self._joint("j2", "b", "c", cid="dup"),
            })

    def test_lookups(self):
        segs = _segments()
        segs["c"] = Segment(id="c", display_name="C", node_name="bone_c")
        m = BiomechModel(id="m", segments=segs, root_segment="a", joints={
            "j1": self._joint("j1", "a", "b", cid="c1"),
            "j2": self._joint("j2", "b", "c", cid="c2"),
        })
        assert [j.id for j in m.child_joints("b")] == ["j2"]
        assert m.parent_joint("b").id == "j1"
        assert m.parent_joint("a") is None
        assert m.coordinate("c2").joint_id == "j2"
        assert m.coordinate("nope") is None
