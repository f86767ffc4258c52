import pytest

from tuneroom.catalog import BUILTIN_TRACKS, Track, TrackCatalog

from conftest import upload_meta


def test_list_starts_with_builtins_in_order(catalog):
    tracks = catalog.list_tracks()
    assert [t.id for t in tracks] == [1, 2, 3, 4, 5]
    assert all(not t.is_uploaded for t in tracks)


def test_uploads_append_in_registration_order(catalog):
    first = catalog.add_uploaded_track(upload_meta("One"))
    second = catalog.add_uploaded_track(upload_meta("Two"))

    ids = [t.id for t in catalog.list_tracks()]
    assert ids == [1, 2, 3, 4, 5, first.id, second.id]
    assert catalog.list_tracks() == catalog.list_tracks()


def test_upload_ids_never_collide_with_builtins(catalog):
    track = catalog.add_uploaded_track(upload_meta())
    assert track.id >= 1000
    assert track.id not in {t.id for t in BUILTIN_TRACKS}
    assert track.is_uploaded
    assert track.uploaded_by == "alice"
    assert track.uploaded_at


def test_upload_ids_are_not_reused_after_delete(catalog):
    a = catalog.add_uploaded_track(upload_meta("A"))
    assert catalog.remove_track(a.id)
    b = catalog.add_uploaded_track(upload_meta("B"))
    assert b.id == a.id + 1


def test_remove_unknown_or_builtin_is_a_noop(catalog):
    assert catalog.remove_track(1) is False
    assert catalog.remove_track(4242) is False
    assert len(catalog) == 5


def test_remove_uploaded(catalog):
    track = catalog.add_uploaded_track(upload_meta())
    assert catalog.remove_track(track.id) is True
    assert catalog.get(track.id) is None
    assert catalog.uploaded_tracks() == []


@pytest.mark.parametrize("ref", [3, "3", {"id": 3, "title": "whatever"}])
def test_resolve_accepts_id_or_track_dict(catalog, ref):
    assert catalog.resolve(ref).title == "Just the Way You Are"


@pytest.mark.parametrize("ref", [None, 99, "abc", {"title": "no id"}, True, 3.5])
def test_resolve_rejects_unknown_refs(catalog, ref):
    assert catalog.resolve(ref) is None


def test_builtin_ids_must_stay_below_upload_range():
    with pytest.raises(ValueError):
        TrackCatalog(builtins=[Track(1000, "x", "y", "/x.mp3")])


def test_wire_form_is_camel_case(catalog):
    builtin = catalog.get(1).to_dict()
    assert builtin["isUploaded"] is False
    assert "uploadedBy" not in builtin

    uploaded = catalog.add_uploaded_track(upload_meta()).to_dict()
    assert uploaded["isUploaded"] is True
    assert uploaded["uploadedBy"] == "alice"
