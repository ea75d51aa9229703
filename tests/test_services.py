"""Tests for the session store, result store, team registry and OCR response handling."""

import pytest

from models.game_result import ResultRecord, ResultSource
from models.scoring import ScoringConfig, load_scoring_config
from services.ocr_client import OCRError, VisionOCRClient
from services.result_store import ScrimNotFoundError
from services.session_store import MatchSessionStore
from services.team_registry import RegistrationError, TeamRegistry, format_team_list, next_free_slot


class TestMatchSessionStore:
    """Tests for per-channel screenshot batches."""

    def test_begin_collect_finish(self):
        """Test images collected between begin and finish are returned once."""
        sessions = MatchSessionStore()
        sessions.begin('chan', scrim_id=1, game=2)
        assert sessions.collect('chan', 'a.png')
        assert sessions.collect('chan', 'b.png')

        session = sessions.finish('chan')
        assert (session.scrim_id, session.game, session.images) == (1, 2, ['a.png', 'b.png'])
        assert sessions.finish('chan') is None
        assert not sessions.is_active('chan')

    def test_collect_without_session(self):
        """Test collecting in a channel with no open batch is refused."""
        assert not MatchSessionStore().collect('chan', 'a.png')

    def test_channels_independent(self):
        """Test batches in different channels don't mix."""
        sessions = MatchSessionStore()
        sessions.begin('one', 1, 1)
        sessions.begin('two', 1, 2)
        sessions.collect('one', 'a.png')
        assert sessions.get('two').images == []

    def test_begin_replaces_open_batch(self):
        """Test starting again in a channel discards the old batch."""
        sessions = MatchSessionStore()
        sessions.begin('chan', 1, 1)
        sessions.collect('chan', 'a.png')
        sessions.begin('chan', 1, 2)
        assert sessions.get('chan').images == []
        assert sessions.get('chan').game == 2

    def test_only_starter_accepted(self):
        """Test a batch started by a member only accepts that member's screenshots."""
        session = MatchSessionStore().begin('chan', 1, 1, started_by=20)
        assert session.accepts_from(20)
        assert not session.accepts_from(99)

    def test_unowned_batch_accepts_anyone(self):
        """Test a batch with no recorded starter accepts every member."""
        assert MatchSessionStore().begin('chan', 1, 1).accepts_from(99)


class TestResultStore:
    """Tests for SQLite persistence."""

    def test_unknown_scrim(self, store):
        """Test looking up a missing scrim raises ScrimNotFoundError."""
        with pytest.raises(ScrimNotFoundError):
            store.get_scrim(999)

    def test_scrim_guild_check(self, store, scrim):
        """Test a scrim can't be reached from another guild."""
        assert store.get_scrim(scrim.id, guild_id=100).name == 'Evening Scrim'
        with pytest.raises(ScrimNotFoundError):
            store.get_scrim(scrim.id, guild_id=200)

    def test_scoring_defaults_and_update(self, store, scrim):
        """Test a new scrim uses default scoring until a table is saved."""
        assert store.scoring_config(scrim.id) == ScoringConfig()
        store.set_scoring_config(scrim.id, load_scoring_config({'p1': 25}))
        assert store.scoring_config(scrim.id).p1 == 25

    def test_teams_ordered_by_slot(self, store, scrim):
        """Test teams come back in slot order."""
        assert [team.slot for team in store.teams(scrim.id)] == [2, 3, 4]

    def test_upsert_keeps_one_record_per_source(self, store, scrim):
        """Test automated and manual records for one key coexist, each overwritten in place."""
        record = ResultRecord(scrim.id, 1, 'DS', 3, 2, 7)
        store.upsert_result(record)
        store.upsert_result(ResultRecord(scrim.id, 1, 'DS', 2, 4, 10))
        store.upsert_result(record.as_manual())

        automated = store.results(scrim.id, ResultSource.AUTOMATED)
        assert [(r.place, r.kills, r.points) for r in automated] == [(2, 4, 10)]
        assert len(store.results(scrim.id, ResultSource.MANUAL)) == 1

    def test_clear_results(self, store, scrim):
        """Test clearing a scrim removes every result."""
        store.upsert_result(ResultRecord(scrim.id, 1, 'DS', 3, 2, 7))
        store.upsert_result(ResultRecord(scrim.id, 2, 'RX', 1, 0, 10).as_manual())
        assert store.clear_results(scrim.id) == 2
        assert store.results(scrim.id, ResultSource.MANUAL) == []


class TestTeamRegistry:
    """Tests for registration and slot allocation."""

    def test_next_free_slot(self):
        """Test the lowest unused slot in range is picked."""
        assert next_free_slot([2, 3, 5], 2, 6) == 4
        assert next_free_slot([], 2, 6) == 2
        assert next_free_slot([2, 3], 2, 3) is None

    def test_register_requires_open(self, store, scrim):
        """Test registering while closed is refused."""
        with pytest.raises(RegistrationError, match='closed'):
            TeamRegistry(store).register(scrim.id, 1, 'Eagles', 'eg')

    def test_register_assigns_slot(self, store, scrim):
        """Test a new team gets the next slot with a cleaned tag."""
        registry = TeamRegistry(store)
        registry.set_registration_open(scrim.id, True)
        team = registry.register(scrim.id, 1, '  Eagles ', ' eagles-x ')
        assert team.slot == 5
        assert team.team_tag == 'EAGLES'
        assert team.team_name == 'Eagles'

    def test_one_team_per_owner(self, store, scrim):
        """Test an owner can't register twice."""
        registry = TeamRegistry(store)
        registry.set_registration_open(scrim.id, True)
        with pytest.raises(RegistrationError, match='Already registered'):
            registry.register(scrim.id, 20, 'Again', 'AG')

    def test_duplicate_normalized_tag_rejected(self, store, scrim):
        """Test a tag that matches a registered tag after normalizing is refused."""
        registry = TeamRegistry(store)
        registry.set_registration_open(scrim.id, True)
        with pytest.raises(RegistrationError, match='already taken by DS'):
            registry.register(scrim.id, 1, 'Dark Side Two', 'd-s')
        assert [team.slot for team in store.teams(scrim.id)] == [2, 3, 4]

    def test_tag_without_letters_rejected(self, store, scrim):
        """Test a tag made only of separators is refused."""
        registry = TeamRegistry(store)
        registry.set_registration_open(scrim.id, True)
        with pytest.raises(RegistrationError, match='letter or digit'):
            registry.register(scrim.id, 1, 'Dashes', '--')

    def test_full_scrim(self, store):
        """Test registration fails once every slot is taken."""
        small = store.create_scrim(guild_id=1, name='Tiny', min_slot=1, max_slot=1)
        registry = TeamRegistry(store)
        registry.set_registration_open(small.id, True)
        registry.register(small.id, 1, 'First', 'FT')
        with pytest.raises(RegistrationError, match='No slots left'):
            registry.register(small.id, 2, 'Second', 'SC')

    def test_confirm_and_unregister(self, store, scrim):
        """Test owners can confirm and leave, staff can free slots."""
        registry = TeamRegistry(store)
        assert registry.confirm(scrim.id, 20).confirmed
        with pytest.raises(RegistrationError):
            registry.confirm(scrim.id, 12345)
        assert registry.unregister(scrim.id, 20)
        assert not registry.unregister(scrim.id, 20)
        assert registry.remove_slot(scrim.id, 3)
        assert [team.slot for team in store.teams(scrim.id)] == [4]

    def test_format_team_list(self, store, scrim):
        """Test the slot list shows empty and confirmed slots."""
        TeamRegistry(store).confirm(scrim.id, 20)
        text = format_team_list(store.get_scrim(scrim.id), store.teams(scrim.id))
        assert 'Teams: 3/24' in text
        assert '**#2** **DS** DarkSide ✅' in text
        assert '**#3** **RX** Rex ⏳' in text
        assert '**#5** _empty_' in text


class TestVisionResponse:
    """Tests for reading Vision annotate responses."""

    def test_full_text_preferred(self):
        """Test fullTextAnnotation text is used when present."""
        payload = {'responses': [{
            'fullTextAnnotation': {'text': '#1\nDS ALICE'},
            'textAnnotations': [{'description': 'other'}],
        }]}
        assert VisionOCRClient.extract_text(payload) == '#1\nDS ALICE'

    def test_falls_back_to_text_annotations(self):
        """Test the first textAnnotations description is used otherwise."""
        payload = {'responses': [{'textAnnotations': [{'description': '#2\nRX BOB'}]}]}
        assert VisionOCRClient.extract_text(payload) == '#2\nRX BOB'

    def test_no_detection(self):
        """Test an image with no text gives an empty string."""
        assert VisionOCRClient.extract_text({'responses': [{}]}) == ''
        assert VisionOCRClient.extract_text({}) == ''

    def test_error_payload(self):
        """Test a per-image error is raised as OCRError."""
        payload = {'responses': [{'error': {'code': 3, 'message': 'Bad image data.'}}]}
        with pytest.raises(OCRError, match='Bad image data'):
            VisionOCRClient.extract_text(payload)

    def test_error_as_string(self):
        """Test an error given as a bare string is raised as OCRError."""
        with pytest.raises(OCRError, match='quota exceeded'):
            VisionOCRClient.extract_text({'responses': [{'error': 'quota exceeded'}]})

    def test_malformed_payload(self):
        """Test payload parts of the wrong type raise OCRError."""
        for payload in (
            {'responses': 'junk'},
            {'responses': ['junk']},
            {'responses': [{'textAnnotations': 'junk'}]},
        ):
            with pytest.raises(OCRError, match='Malformed'):
                VisionOCRClient.extract_text(payload)

    def test_odd_annotation_entries(self):
        """Test non-text annotation values give an empty string."""
        assert VisionOCRClient.extract_text({'responses': [{'fullTextAnnotation': 'x', 'textAnnotations': [5]}]}) == ''
        assert VisionOCRClient.extract_text({'responses': [{'textAnnotations': [{'description': None}]}]}) == ''

    def test_request_shape(self):
        """Test the request asks for TEXT_DETECTION on the image URL."""
        request = VisionOCRClient.build_request('https://cdn.example.com/shot.png')
        assert request['requests'][0]['image']['source']['imageUri'] == 'https://cdn.example.com/shot.png'
        assert request['requests'][0]['features'] == [{'type': 'TEXT_DETECTION'}]
