"""Tests for edit-session transitions and the session holder."""

import pytest

from snapedit import session
from snapedit.errors import InvalidDimension, NoOp, OperationInProgress
from snapedit.models import ImageDescriptor, ImageFormat, OperationKind


def _img(ref, w=100, h=100, fmt=ImageFormat.RASTER_LOSSLESS):
    return ImageDescriptor(ref, w, h, fmt)


class TestStart:
    def test_single_original_entry(self, png_image):
        state = session.start(png_image)
        assert len(state.history) == 1
        assert state.cursor == 0
        assert state.history[0].kind is OperationKind.ORIGINAL
        assert session.current(state) is png_image
        assert state.aspect_ratio == pytest.approx(1.5)
        assert not session.can_undo(state)
        assert not session.can_redo(state)

    def test_descriptor_rejects_zero_size(self):
        with pytest.raises(InvalidDimension):
            ImageDescriptor("bad", 0, 10, ImageFormat.RASTER_LOSSLESS)


class TestCommit:
    def test_appends_and_moves_cursor(self, png_image):
        state = session.commit(session.start(png_image), OperationKind.RESIZE, _img("a"))
        assert state.cursor == 1
        assert [e.kind for e in state.history] == [OperationKind.ORIGINAL, OperationKind.RESIZE]
        assert session.can_undo(state)

    def test_does_not_mutate_previous_state(self, png_image):
        before = session.start(png_image)
        session.commit(before, OperationKind.CROP, _img("a"))
        assert len(before.history) == 1

    def test_prunes_redo_branch(self, png_image):
        state = session.start(png_image)
        state = session.commit(state, OperationKind.RESIZE, _img("a"))
        state = session.commit(state, OperationKind.CROP, _img("b"))
        state = session.undo(state)
        state = session.commit(state, OperationKind.CONVERT, _img("c"))
        assert [e.image.reference for e in state.history] == ["orig", "a", "c"]
        assert state.cursor == 2
        assert not session.can_redo(state)

    def test_keeps_original_aspect_ratio(self, png_image):
        state = session.commit(session.start(png_image), OperationKind.CROP, _img("sq", 50, 50))
        assert state.aspect_ratio == pytest.approx(1.5)

    def test_entry_ids_unique(self, png_image):
        state = session.start(png_image)
        for ref in "abc":
            state = session.commit(state, OperationKind.RESIZE, _img(ref))
        assert len({e.id for e in state.history}) == 4


class TestUndoRedo:
    def test_round_trip(self, png_image):
        state = session.commit(session.start(png_image), OperationKind.RESIZE, _img("a"))
        back = session.undo(state)
        assert session.current(back) is png_image
        assert session.can_redo(back)
        forward = session.redo(back)
        assert session.current(forward).reference == "a"

    def test_boundaries_return_same_state(self, png_image):
        state = session.start(png_image)
        assert session.undo(state) is state
        assert session.redo(state) is state

    def test_history_shared_by_cursor_moves(self, png_image):
        state = session.commit(session.start(png_image), OperationKind.RESIZE, _img("a"))
        assert session.undo(state).history is state.history


class TestEditSession:
    def test_undo_redo_raise_noop_at_boundaries(self, png_image):
        holder = session.EditSession(png_image)
        with pytest.raises(NoOp):
            holder.undo()
        with pytest.raises(NoOp):
            holder.redo()

    def test_operation_commit(self, png_image):
        holder = session.EditSession(png_image)
        generation = holder.begin_operation()
        assert holder.busy
        new_state = session.commit(holder.state, OperationKind.RESIZE, _img("a"))
        assert holder.finish_operation(generation, new_state)
        assert not holder.busy
        assert holder.current.reference == "a"
        assert holder.undo() is png_image
        assert holder.redo().reference == "a"

    def test_second_operation_rejected(self, png_image):
        holder = session.EditSession(png_image)
        holder.begin_operation()
        with pytest.raises(OperationInProgress):
            holder.begin_operation()

    def test_abandon_releases_reservation(self, png_image):
        holder = session.EditSession(png_image)
        generation = holder.begin_operation()
        holder.abandon_operation(generation)
        assert not holder.busy
        assert holder.begin_operation() == generation + 1

    def test_stale_generation_ignored(self, png_image):
        holder = session.EditSession(png_image)
        stale = holder.begin_operation()
        holder.abandon_operation(stale)
        holder.begin_operation()
        new_state = session.commit(holder.state, OperationKind.CROP, _img("late"))
        assert not holder.finish_operation(stale, new_state)
        assert holder.current is png_image
        assert holder.busy

    def test_discarded_session_ignores_results(self, png_image):
        holder = session.EditSession(png_image)
        generation = holder.begin_operation()
        holder.discard()
        new_state = session.commit(holder.state, OperationKind.CROP, _img("late"))
        assert not holder.finish_operation(generation, new_state)
        assert holder.current is png_image
        assert holder.discarded
        with pytest.raises(OperationInProgress):
            holder.begin_operation()

    def test_undo_redo_blocked_while_operation_outstanding(self, png_image):
        holder = session.EditSession(png_image)
        generation = holder.begin_operation()
        holder.finish_operation(generation, session.commit(holder.state, OperationKind.RESIZE, _img("a")))

        generation = holder.begin_operation()
        base = holder.state
        with pytest.raises(OperationInProgress):
            holder.undo()
        with pytest.raises(OperationInProgress):
            holder.redo()
        assert holder.state is base

        assert holder.finish_operation(generation, session.commit(base, OperationKind.CROP, _img("b")))
        assert [e.image.reference for e in holder.state.history] == ["orig", "a", "b"]
        assert holder.undo().reference == "a"
