"""
Tests for the conference session recommendation and booking system.

Tests cover:
- Category routing
- Session scoring and time parsing helpers
- Greedy arrangement (conflict removal, gap minimisation)
- Optional LLM reordering
- Service layer (recommendations, bookings, calendar export, session import)
- API endpoints
- Management commands
"""

import json
import os
import tempfile
from datetime import date, datetime, timedelta, timezone as dt_timezone
from io import StringIO
from types import SimpleNamespace
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient, APITestCase

from . import services
from .arrangement import arrange_greedy, minimize_gaps, remove_conflicts
from .exceptions import ConflictError, NotFoundError, ValidationError
from .ics import build_calendar, escape_text
from .matching import (
    calculate_availability,
    calculate_category_match,
    calculate_freshness,
    calculate_tag_overlap,
    calculate_time_fit,
    parse_duration,
    parse_session_datetime,
    parse_time,
    score_session,
    sessions_overlap,
)
from .models import Booking, ConferenceSession
from .reordering import apply_order, reorder_sessions
from .routing import route_category
from .types import (
    NO_MATCHES_MESSAGE,
    NO_SESSIONS_MESSAGE,
    ScoredSession,
    TimePreference,
    UserProfile,
)


SESSION_DATE = date(2030, 5, 1)


def make_session(**overrides):
    """Build an unsaved session with sensible defaults."""
    fields = {
        'title': 'Session',
        'category': 'DigitalMarketing',
        'subcategory': '',
        'tags': [],
        'date': SESSION_DATE,
        'time': '10:00 AM',
        'duration': '1 hour',
        'capacity': None,
        'enrolled': 0,
    }
    fields.update(overrides)
    return ConferenceSession(**fields)


def aware(*args):
    return timezone.make_aware(datetime(*args))


def parse_ics_datetime(value):
    return datetime.strptime(value, '%Y%m%dT%H%M%SZ').replace(tzinfo=dt_timezone.utc)


def ics_values(content, name):
    prefix = f'{name}:'
    return [line[len(prefix):] for line in content.split('\r\n') if line.startswith(prefix)]


class CategoryRoutingTests(SimpleTestCase):
    """Test route_category rules."""

    def test_marketing_rules_in_priority_order(self):
        """Test marketing focus keywords route in rule order."""
        self.assertEqual(route_category('marketing', ['Content Strategy']), 'ContentMarketing')
        self.assertEqual(route_category('marketing', ['social ads', 'digital']), 'DigitalMarketing')
        self.assertEqual(route_category('marketing', ['Social Media']), 'SocialMedia')
        self.assertEqual(route_category('Marketing', ['SEO basics']), 'DigitalMarketing')
        self.assertEqual(route_category('marketing', []), 'DigitalMarketing')

    def test_technology_rules(self):
        """Test tech/technology focus keywords."""
        self.assertEqual(route_category('tech', ['product', 'Software']), 'WebDevelopment')
        self.assertEqual(route_category('technology', ['Data pipelines']), 'DataScience')
        self.assertEqual(route_category('Technology', ['product discovery']), 'ProductManagement')
        self.assertEqual(route_category('tech', ['DevOps']), 'DevOps')
        self.assertEqual(route_category('tech', ['design']), 'WebDevelopment')

    def test_single_category_industries(self):
        """Test sales, finance and unknown industries."""
        self.assertEqual(route_category('sales', ['negotiation']), 'Sales')
        self.assertEqual(route_category('FINANCE'), 'Finance')
        self.assertEqual(route_category('healthcare', ['digital']), 'General')


class TimeParsingTests(SimpleTestCase):
    """Test time and duration parsing helpers."""

    def test_parse_time(self):
        """Test AM/PM hours and the 10 AM default."""
        self.assertEqual(parse_time('2:30 PM'), 14)
        self.assertEqual(parse_time('9 am'), 9)
        self.assertEqual(parse_time('12:00 PM'), 12)
        self.assertEqual(parse_time('12:00 AM'), 0)

    def test_parse_time_defaults_to_ten(self):
        """Test strings without the AM/PM pattern yield hour 10."""
        for value in [None, '', 'noon', '14:00', 'morning']:
            self.assertEqual(parse_time(value), 10)
            self.assertEqual(parse_session_datetime(SESSION_DATE, value).hour, 10)

    def test_parse_duration(self):
        """Test decimal hours and the 2 hour default."""
        self.assertEqual(parse_duration('1.5 hours'), 1.5)
        self.assertEqual(parse_duration('1 Hour'), 1.0)
        for value in [None, '', '90 minutes', 'all day']:
            self.assertEqual(parse_duration(value), 2.0)

    def test_parse_session_datetime_drops_minutes(self):
        """Test minutes in the time string are ignored."""
        start = parse_session_datetime(SESSION_DATE, '2:45 PM')
        self.assertEqual(start, aware(2030, 5, 1, 14, 0))
        self.assertTrue(timezone.is_aware(start))

    def test_parse_session_datetime_accepts_iso_string(self):
        """Test ISO date strings are accepted."""
        self.assertEqual(
            parse_session_datetime('2030-05-01', '9:00 AM'),
            aware(2030, 5, 1, 9, 0)
        )

    def test_session_end(self):
        """Test end_datetime adds the parsed duration."""
        session = make_session(time='1:00 PM', duration='1.5 hours')
        self.assertEqual(session.end_datetime, aware(2030, 5, 1, 14, 30))
        self.assertEqual(make_session(duration='').end_datetime, aware(2030, 5, 1, 12, 0))


class SessionScoringTests(SimpleTestCase):
    """Test scoring sub-scores and the final score."""

    def test_tag_overlap_exact_match(self):
        """Test exact case-insensitive, trimmed matches."""
        profile = UserProfile(industry='marketing', focus=['digital marketing '])
        self.assertEqual(calculate_tag_overlap([' Digital Marketing'], profile.focus), 1.0)

    def test_tag_overlap_partial_matches(self):
        """Test each partial (tag, focus) pair counts 0.3."""
        self.assertAlmostEqual(
            calculate_tag_overlap(['Advanced SEO Techniques'], ['SEO', 'Email']),
            0.15
        )
        self.assertAlmostEqual(
            calculate_tag_overlap(['content marketing strategy'], ['content', 'marketing']),
            0.3
        )

    def test_tag_overlap_is_capped(self):
        """Test the normalised overlap never exceeds 1.0."""
        self.assertEqual(calculate_tag_overlap(['seo', 'SEO tools'], ['seo']), 1.0)

    def test_tag_overlap_empty_inputs(self):
        """Test empty tags or focus give 0."""
        self.assertEqual(calculate_tag_overlap([], ['seo']), 0.0)
        self.assertEqual(calculate_tag_overlap(['seo'], []), 0.0)

    def test_category_match(self):
        """Test expected category, subcategory and missing industry."""
        marketing = UserProfile(industry='marketing', focus=['email'])
        self.assertEqual(calculate_category_match(make_session(category='EmailMarketing'), marketing), 1.0)

        finance = UserProfile(industry='finance', focus=['risk'])
        session = make_session(category='Sales', subcategory='Risk Analytics')
        self.assertEqual(calculate_category_match(session, finance), 0.7)
        other = make_session(category='Sales', subcategory='Pipelines')
        self.assertEqual(calculate_category_match(other, finance), 0.0)

        self.assertEqual(calculate_category_match(make_session(), UserProfile(focus=['seo'])), 0.0)

    def test_time_fit(self):
        """Test inside, overlapping, and disjoint windows."""
        session = make_session(time='10:00 AM', duration='2 hours')
        self.assertEqual(calculate_time_fit(session, None), 1.0)

        inside = TimePreference(aware(2030, 5, 1, 9), aware(2030, 5, 1, 13))
        partial = TimePreference(aware(2030, 5, 1, 11), aware(2030, 5, 1, 15))
        touching = TimePreference(aware(2030, 5, 1, 12), aware(2030, 5, 1, 15))
        self.assertEqual(calculate_time_fit(session, inside), 1.0)
        self.assertEqual(calculate_time_fit(session, partial), 0.5)
        self.assertEqual(calculate_time_fit(session, touching), 0.0)

    def test_freshness(self):
        """Test the 9 AM to 8 PM ramp."""
        self.assertEqual(calculate_freshness(make_session(time='9:00 AM')), 1.0)
        self.assertAlmostEqual(calculate_freshness(make_session(time='3:00 PM')), 1 - 6 / 11)
        self.assertEqual(calculate_freshness(make_session(time='8:00 PM')), 0.0)
        self.assertEqual(calculate_freshness(make_session(time='8:00 AM')), 0.0)
        self.assertEqual(calculate_freshness(make_session(time='10:00 PM')), 0.0)

    def test_availability(self):
        """Test free-seat ratio and unlimited sessions."""
        self.assertEqual(calculate_availability(make_session(capacity=40, enrolled=10)), 0.75)
        self.assertEqual(calculate_availability(make_session(capacity=None, enrolled=10)), 1.0)
        self.assertEqual(calculate_availability(make_session(capacity=40, enrolled=0)), 1.0)

    def test_irrelevant_session_scores_zero(self):
        """Test the relevance gate ignores timing and availability."""
        session = make_session(category='Culinary', subcategory='Baking', tags=['Cooking'], time='9:00 AM')
        profile = UserProfile(
            industry='finance',
            focus=['risk'],
            time_pref=TimePreference(aware(2030, 5, 1, 8), aware(2030, 5, 1, 18))
        )
        self.assertEqual(score_session(session, profile), 0)

    def test_exact_tag_and_category_score(self):
        """Test the weighted score for a fully relevant session."""
        session = make_session(
            category='DigitalMarketing',
            tags=['Digital Marketing'],
            time='10:00 AM',
            capacity=50,
            enrolled=10
        )
        profile = UserProfile(industry='marketing', focus=['Digital Marketing'])
        # 5*1 + 2*1 + 0.3*(10/11) + 0.2*0.8
        self.assertEqual(score_session(session, profile), 7.43)

    def test_subcategory_only_score(self):
        """Test relevance from subcategory alone."""
        session = make_session(category='Workshops', subcategory='Risk', time='9:00 AM')
        profile = UserProfile(industry='finance', focus=['risk'])
        # 5*0.7 + 2 + 0.3 + 0.2
        self.assertEqual(score_session(session, profile), 6.0)

    def test_absent_subcategory_matches_any_focus(self):
        """Test a session without subcategory gets the subcategory score."""
        profile = UserProfile(industry='finance', focus=['risk'])
        for subcategory in ['', None]:
            session = make_session(category='Sales', subcategory=subcategory, time='9:00 AM')
            self.assertEqual(calculate_category_match(session, profile), 0.7)
            self.assertEqual(score_session(session, profile), 6.0)

        no_focus = UserProfile(industry='finance')
        self.assertEqual(calculate_category_match(make_session(category='Sales'), no_focus), 0.0)

    def test_blank_focus_terms_are_dropped(self):
        """Test profile normalisation of focus terms."""
        profile = UserProfile(industry=' marketing ', focus=['', '  ', ' seo '])
        self.assertEqual(profile.industry, 'marketing')
        self.assertEqual(profile.focus, ('seo',))


class ArrangementTests(SimpleTestCase):
    """Test greedy conflict removal and gap minimisation."""

    def scored(self, session_id, score, **fields):
        return ScoredSession(make_session(id=session_id, **fields), score)

    def test_touching_sessions_do_not_overlap(self):
        """Test half-open interval semantics."""
        first = make_session(time='10:00 AM', duration='2 hours')
        touching = make_session(time='12:00 PM')
        overlapping = make_session(time='11:00 AM')
        other_day = make_session(date=SESSION_DATE + timedelta(days=1))

        self.assertFalse(sessions_overlap(first, touching))
        self.assertFalse(sessions_overlap(touching, first))
        self.assertTrue(sessions_overlap(first, overlapping))
        self.assertFalse(sessions_overlap(first, other_day))

    def test_remove_conflicts_keeps_highest_score(self):
        """Test pairwise-overlapping sessions collapse to the best one."""
        sessions = [
            self.scored(1, 3.0),
            self.scored(2, 5.0),
            self.scored(3, 4.0),
        ]
        result = remove_conflicts(sessions)
        self.assertEqual([item.id for item in result], [2])

    def test_remove_conflicts_tie_keeps_first(self):
        """Test equal scores keep their incoming relative order."""
        sessions = [self.scored(7, 4.0), self.scored(8, 4.0)]
        self.assertEqual([item.id for item in remove_conflicts(sessions)], [7])

    def test_remove_conflicts_is_greedy(self):
        """Test the greedy choice is not the best total score."""
        sessions = [
            self.scored(1, 6.0, time='10:00 AM', duration='2 hours'),
            self.scored(2, 4.0, time='9:00 AM', duration='1.5 hours'),
            self.scored(3, 4.0, time='11:00 AM', duration='1.5 hours'),
        ]
        self.assertEqual([item.id for item in remove_conflicts(sessions)], [1])

    def test_minimize_gaps_boundary(self):
        """Test a 90 minute gap is kept and a longer one dropped."""
        first = self.scored(1, 5.0, time='9:00 AM', duration='0.5 hours')
        ninety = self.scored(2, 5.0, time='11:00 AM')
        self.assertEqual([item.id for item in minimize_gaps([first, ninety])], [1, 2])

        short_first = self.scored(3, 5.0, time='9:00 AM', duration='0.45 hours')
        self.assertEqual([item.id for item in minimize_gaps([short_first, ninety])], [3])

    def test_minimize_gaps_measures_from_last_kept(self):
        """Test a dropped session is never the reference for the next gap."""
        first = self.scored(1, 5.0, time='9:00 AM', duration='1 hour')
        dropped = self.scored(2, 5.0, time='12:00 PM', duration='1 hour')
        after_dropped = self.scored(3, 5.0, time='1:00 PM', duration='1 hour')
        close_to_kept = self.scored(4, 5.0, time='11:00 AM', duration='1 hour')

        # session 3 starts right when session 2 ends but 180 minutes after session 1
        result = minimize_gaps([first, dropped, after_dropped])
        self.assertEqual([item.id for item in result], [1])

        result = minimize_gaps([first, dropped, close_to_kept])
        self.assertEqual([item.id for item in result], [1, 4])

    def test_arrange_greedy_avoid_gaps(self):
        """Test chronological, gap-limited output."""
        sessions = [
            self.scored(1, 5.0, time='1:00 PM'),
            self.scored(2, 7.0, time='10:00 AM'),
            self.scored(3, 6.0, time='11:00 AM'),
            self.scored(4, 4.0, time='10:00 AM'),
            self.scored(5, 3.0, time='6:00 PM'),
        ]
        result = arrange_greedy(sessions, avoid_gaps=True)
        self.assertEqual([item.id for item in result], [2, 3, 1])

    def test_arrange_greedy_without_gap_check(self):
        """Test score order is kept when gaps are allowed."""
        sessions = [
            self.scored(1, 5.0, time='1:00 PM'),
            self.scored(2, 7.0, time='10:00 AM'),
            self.scored(3, 3.0, time='6:00 PM'),
        ]
        result = arrange_greedy(sessions, avoid_gaps=False)
        self.assertEqual([item.id for item in result], [2, 1, 3])


class ReorderingTests(SimpleTestCase):
    """Test optional LLM reordering."""

    def setUp(self):
        self.items = [
            ScoredSession(make_session(id=1, time='9:00 AM'), 7.0),
            ScoredSession(make_session(id=2, time='11:00 AM'), 6.5),
            ScoredSession(make_session(id=3, time='1:00 PM'), 6.0),
        ]
        self.profile = UserProfile(industry='marketing', focus=['seo'])

    def client_replying(self, content):
        client = mock.Mock()
        client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
        )
        return client

    def test_apply_order_appends_missing_ids(self):
        """Test unknown ids are ignored and omitted ids keep their order."""
        result = apply_order(self.items, [3, 42, 1])
        self.assertEqual([item.id for item in result], [3, 1, 2])

    def test_reorder_uses_llm_order(self):
        """Test a valid id array is applied."""
        client = self.client_replying('Optimized order: [2, 3, 1]')
        result, applied = reorder_sessions(self.items, self.profile, client=client)

        self.assertTrue(applied)
        self.assertEqual([item.id for item in result], [2, 3, 1])
        client.chat.completions.create.assert_called_once()
        prompt = client.chat.completions.create.call_args.kwargs['messages'][0]['content']
        self.assertIn('Focus areas: seo', prompt)
        self.assertIn('FILTERING REQUIREMENTS', prompt)
        self.assertIn('scores < 2.0 should be placed last', prompt)

    def test_reorder_falls_back_on_empty_or_unknown_ids(self):
        """Test an id array naming no recommended session is not applied."""
        for reply in ['[ ]', '[]', '[42, 43]']:
            client = self.client_replying(reply)
            result, applied = reorder_sessions(self.items, self.profile, client=client)

            self.assertFalse(applied)
            self.assertEqual([item.id for item in result], [1, 2, 3])

    def test_reorder_falls_back_on_error(self):
        """Test client errors keep the arranged order."""
        client = mock.Mock()
        client.chat.completions.create.side_effect = RuntimeError('timeout')
        result, applied = reorder_sessions(self.items, self.profile, client=client)

        self.assertFalse(applied)
        self.assertEqual([item.id for item in result], [1, 2, 3])

    def test_reorder_falls_back_on_malformed_reply(self):
        """Test replies without an id array keep the arranged order."""
        client = self.client_replying('I would start with the SEO session.')
        result, applied = reorder_sessions(self.items, self.profile, client=client)

        self.assertFalse(applied)
        self.assertEqual([item.id for item in result], [1, 2, 3])

    @override_settings(OPENAI_API_KEY='')
    def test_reorder_without_api_key(self):
        """Test no client is built without an API key."""
        result, applied = reorder_sessions(self.items, self.profile)
        self.assertFalse(applied)
        self.assertEqual(result, self.items)

    def test_single_session_is_not_sent(self):
        """Test one session never reaches the LLM."""
        client = self.client_replying('[1]')
        result, applied = reorder_sessions(self.items[:1], self.profile, client=client)

        self.assertFalse(applied)
        client.chat.completions.create.assert_not_called()


class CalendarExportTests(SimpleTestCase):
    """Test iCalendar generation."""

    def test_escape_text(self):
        """Test backslash, semicolon, comma and newline escaping."""
        self.assertEqual(escape_text('a,b;c\\d\r\ne'), 'a\\,b\\;c\\\\d\\ne')
        self.assertEqual(escape_text(None), '')

    def test_build_calendar(self):
        """Test calendar structure, alarm and defaults."""
        sessions = [
            make_session(id=1, title='SEO, Deep Dive', time='9:00 AM'),
            make_session(id=2, title='Email', time='1:00 PM', instructor='Dana', location='Room 4'),
        ]
        content = build_calendar(sessions)
        lines = content.split('\r\n')

        self.assertEqual(lines[0], 'BEGIN:VCALENDAR')
        self.assertEqual(lines[-1], 'END:VCALENDAR')
        self.assertEqual(lines.count('BEGIN:VEVENT'), 2)
        self.assertEqual(lines.count('TRIGGER:-PT15M'), 2)
        self.assertEqual(ics_values(content, 'SUMMARY'), ['SEO\\, Deep Dive', 'Email'])
        self.assertEqual(ics_values(content, 'LOCATION'), ['Online Session', 'Room 4'])
        self.assertEqual(ics_values(content, 'ORGANIZER'), ['CN=Conference Organizer', 'CN=Dana'])
        self.assertEqual(ics_values(content, 'DTSTART')[0], '20300501T090000Z')
        self.assertEqual(ics_values(content, 'DTEND')[0], '20300501T100000Z')


class RecommendationServiceTests(TestCase):
    """Test recommend_sessions."""

    def setUp(self):
        self.day = timezone.localdate() + timedelta(days=5)

    def create_session(self, **fields):
        defaults = {
            'title': 'Session',
            'category': 'DigitalMarketing',
            'date': self.day,
            'time': '10:00 AM',
            'duration': '1 hour',
        }
        defaults.update(fields)
        return ConferenceSession.objects.create(**defaults)

    def test_exact_match_is_recommended(self):
        """Test a marketing session tagged exactly with the focus."""
        session = self.create_session(
            title='Growth Marketing 101',
            tags=['Digital Marketing'],
            capacity=50,
            enrolled=10
        )

        result = services.recommend_sessions(industry='marketing', focus=['Digital Marketing'])

        self.assertEqual(result.category, 'DigitalMarketing')
        self.assertEqual([item.id for item in result.items], [session.id])
        self.assertEqual(result.items[0].score, 7.43)
        self.assertEqual(result.final_count, 1)
        self.assertEqual(result.total_analyzed, 1)
        self.assertFalse(result.llm_optimized)
        self.assertIsNone(result.message)

    def test_no_relevant_sessions(self):
        """Test an industry without matching sessions returns nothing."""
        self.create_session(tags=['SEO'])

        result = services.recommend_sessions(industry='finance')

        self.assertEqual(result.category, 'Finance')
        self.assertEqual(result.items, [])
        self.assertEqual(result.final_count, 0)
        self.assertEqual(result.total_analyzed, 1)
        self.assertEqual(result.message, NO_MATCHES_MESSAGE)

    def test_empty_store(self):
        """Test the empty-store message."""
        result = services.recommend_sessions(industry='sales')

        self.assertEqual(result.items, [])
        self.assertEqual(result.total_analyzed, 0)
        self.assertEqual(result.message, NO_SESSIONS_MESSAGE)

    def test_broad_fetch_when_category_is_empty(self):
        """Test other categories are fetched when the routed one has no sessions."""
        upcoming = self.create_session(title='Growth Loops')
        self.create_session(title='Last year', date=timezone.localdate() - timedelta(days=1))

        result = services.recommend_sessions(industry='sales', focus=['growth'])

        self.assertEqual(result.category, 'Sales')
        self.assertEqual([item.id for item in result.items], [upcoming.id])
        # 5*0.7 + 2 + 0.3*(10/11) + 0.2
        self.assertEqual(result.items[0].score, 5.97)
        self.assertEqual(result.total_analyzed, 1)

    def test_missing_industry(self):
        """Test industry is required."""
        with self.assertRaises(ValidationError):
            services.recommend_sessions(industry='  ', focus=['seo'])

    def test_full_and_past_sessions_are_skipped(self):
        """Test sessions at capacity and past sessions are not candidates."""
        open_session = self.create_session(title='Open', capacity=10, enrolled=9)
        self.create_session(title='Full', time='2:00 PM', capacity=10, enrolled=10)
        self.create_session(title='Past', date=timezone.localdate() - timedelta(days=1))

        result = services.recommend_sessions(industry='marketing')

        self.assertEqual([item.id for item in result.items], [open_session.id])
        self.assertEqual(result.total_analyzed, 1)

    def test_overlapping_sessions_keep_best(self):
        """Test arrangement keeps the better of two overlapping sessions."""
        best = self.create_session(title='Unlimited')
        self.create_session(title='Half full', capacity=10, enrolled=5)

        result = services.recommend_sessions(industry='marketing')

        self.assertEqual([item.id for item in result.items], [best.id])
        self.assertEqual(result.top_candidates, 2)

    def test_fallback_when_arrangement_drops_too_many(self):
        """Test sessions on separate days fall back to score order."""
        sessions = [
            self.create_session(date=self.day + timedelta(days=offset), capacity=100, enrolled=enrolled)
            for offset, enrolled in [(3, 30), (0, 20), (2, 0), (1, 10)]
        ]

        result = services.recommend_sessions(industry='marketing', avoid_gaps=True)

        expected = [sessions[2].id, sessions[3].id, sessions[1].id, sessions[0].id]
        self.assertEqual([item.id for item in result.items], expected)

    def test_without_gap_avoidance(self):
        """Test conflict-free sessions stay in score order."""
        late = self.create_session(time='4:00 PM')
        early = self.create_session(time='9:00 AM')

        result = services.recommend_sessions(industry='marketing', avoid_gaps=False)

        self.assertEqual([item.id for item in result.items], [early.id, late.id])

    def test_top_k_limits_candidates(self):
        """Test top_k caps both candidates and results."""
        for hour in ['9:00 AM', '10:00 AM', '11:00 AM', '12:00 PM']:
            self.create_session(time=hour)

        result = services.recommend_sessions(industry='marketing', top_k=1)

        self.assertEqual(result.top_candidates, 2)
        self.assertEqual(result.final_count, 1)

    def test_time_preference_window(self):
        """Test sessions far beyond the preferred window are not fetched."""
        inside = self.create_session(time='10:00 AM')
        self.create_session(date=self.day + timedelta(days=20))
        start = timezone.make_aware(datetime.combine(self.day, datetime.min.time()) + timedelta(hours=9))
        time_pref = TimePreference(start=start, end=start + timedelta(hours=3))

        result = services.recommend_sessions(industry='marketing', time_pref=time_pref)

        self.assertEqual([item.id for item in result.items], [inside.id])
        self.assertEqual(result.total_analyzed, 1)

    def test_llm_reorder_applied(self):
        """Test the reordered list is returned when the LLM succeeds."""
        first = self.create_session(time='9:00 AM')
        second = self.create_session(time='10:00 AM')

        def reverse(items, profile):
            return list(reversed(items)), True

        with mock.patch('conference.services.reorder_sessions', side_effect=reverse):
            result = services.recommend_sessions(industry='marketing', use_llm=True)

        self.assertTrue(result.llm_optimized)
        self.assertEqual([item.id for item in result.items], [second.id, first.id])

    def test_llm_failure_keeps_order(self):
        """Test a failing LLM call never fails the request."""
        first = self.create_session(time='9:00 AM')
        second = self.create_session(time='10:00 AM')
        client = mock.Mock()
        client.chat.completions.create.side_effect = RuntimeError('service unavailable')

        with mock.patch('conference.reordering.build_client', return_value=client):
            result = services.recommend_sessions(industry='marketing', use_llm=True)

        self.assertFalse(result.llm_optimized)
        self.assertEqual([item.id for item in result.items], [first.id, second.id])


class BookingServiceTests(TestCase):
    """Test book_sessions and booking lookups."""

    def setUp(self):
        day = timezone.localdate() + timedelta(days=3)
        self.morning = ConferenceSession.objects.create(
            title='Morning', category='Sales', date=day, time='9:00 AM',
            duration='1 hour', capacity=20, enrolled=5
        )
        self.late_morning = ConferenceSession.objects.create(
            title='Late morning', category='Sales', date=day, time='11:00 AM',
            duration='1 hour', capacity=None, enrolled=None
        )
        self.overlapping = ConferenceSession.objects.create(
            title='Overlapping', category='Sales', date=day, time='9:00 AM',
            duration='2 hours', capacity=20, enrolled=0
        )
        self.full = ConferenceSession.objects.create(
            title='Full', category='Sales', date=day, time='3:00 PM',
            duration='1 hour', capacity=10, enrolled=10
        )

    def test_book_sessions(self):
        """Test booking creates one record per session and increments seats."""
        result = services.book_sessions(
            [self.morning.id, self.late_morning.id],
            {'user_id': 'u-1', 'name': 'Ada'}
        )

        bookings = Booking.objects.for_group(result.booking_id)
        self.assertEqual(bookings.count(), 2)
        self.assertEqual(result.session_ids, [self.morning.id, self.late_morning.id])
        for booking in bookings:
            self.assertEqual(booking.status, 'confirmed')
            self.assertEqual(booking.user_details['name'], 'Ada')

        self.morning.refresh_from_db()
        self.late_morning.refresh_from_db()
        self.assertEqual(self.morning.enrolled, 6)
        self.assertEqual(self.late_morning.enrolled, 1)

    def test_conflicting_sessions_are_rejected(self):
        """Test overlapping sessions are reported as a pair and nothing is written."""
        with self.assertRaises(ConflictError) as ctx:
            services.book_sessions([self.morning.id, self.overlapping.id])

        self.assertEqual(ctx.exception.details['conflicts'], [[self.morning.id, self.overlapping.id]])
        self.assertEqual(Booking.objects.count(), 0)
        self.morning.refresh_from_db()
        self.overlapping.refresh_from_db()
        self.assertEqual(self.morning.enrolled, 5)
        self.assertEqual(self.overlapping.enrolled, 0)

    def test_full_session_is_rejected(self):
        """Test full sessions are reported before conflicts."""
        with self.assertRaises(ConflictError) as ctx:
            services.book_sessions([self.full.id, self.morning.id, self.overlapping.id])

        self.assertEqual(ctx.exception.details, {'unavailable_sessions': [self.full.id]})
        self.assertEqual(Booking.objects.count(), 0)

    def test_missing_session_ids(self):
        """Test an empty selection is a validation error."""
        with self.assertRaises(ValidationError):
            services.book_sessions([])

    def test_unknown_sessions(self):
        """Test a selection of only unknown ids is not found."""
        with self.assertRaises(NotFoundError):
            services.book_sessions([999999, 999998])
        self.assertEqual(Booking.objects.count(), 0)

    def test_unknown_ids_are_skipped(self):
        """Test the found sessions are booked and unknown ids reported."""
        result = services.book_sessions([999999, self.late_morning.id, self.morning.id])

        self.assertEqual(result.session_ids, [self.late_morning.id, self.morning.id])
        self.assertEqual(result.missing_session_ids, [999999])
        self.assertEqual(Booking.objects.for_group(result.booking_id).count(), 2)
        self.morning.refresh_from_db()
        self.assertEqual(self.morning.enrolled, 6)

    def test_unknown_ids_do_not_hide_conflicts(self):
        """Test the found sessions are still checked for conflicts."""
        with self.assertRaises(ConflictError):
            services.book_sessions([self.morning.id, 999999, self.overlapping.id])
        self.assertEqual(Booking.objects.count(), 0)

    def test_calendar_round_trip(self):
        """Test the export reproduces the booked title, start and end."""
        self.morning.title = 'Pipeline, Forecasting; Q&A'
        self.morning.save()

        result = services.book_sessions([self.morning.id])
        content = services.export_booking_calendar(result.booking_id)

        booked = result.sessions[0]
        self.assertEqual(ics_values(content, 'SUMMARY'), [escape_text(booked.title)])
        self.assertEqual(parse_ics_datetime(ics_values(content, 'DTSTART')[0]), booked.start_datetime)
        self.assertEqual(parse_ics_datetime(ics_values(content, 'DTEND')[0]), booked.end_datetime)

    def test_calendar_unknown_booking(self):
        """Test exporting an unknown booking."""
        with self.assertRaises(NotFoundError):
            services.export_booking_calendar('00000000-0000-4000-8000-000000000000')

    def test_bookings_for_user(self):
        """Test lookup by user_details.user_id."""
        services.book_sessions([self.morning.id], {'user_id': 'u-7'})
        services.book_sessions([self.late_morning.id], {'user_id': 'someone-else'})

        bookings = services.get_bookings_for_user('u-7')

        self.assertEqual([booking.session_id for booking in bookings], [self.morning.id])


class SessionImportTests(TestCase):
    """Test import_sessions and the load_sessions command."""

    def write_json(self, payload):
        handle, path = tempfile.mkstemp(suffix='.json')
        with os.fdopen(handle, 'w', encoding='utf-8') as fh:
            json.dump(payload, fh)
        self.addCleanup(os.remove, path)
        return path

    def test_import_sessions(self):
        """Test records become sessions."""
        created = services.import_sessions([
            {'title': 'SEO', 'category': 'DigitalMarketing', 'date': '2030-05-01',
             'time': '9:00 AM', 'tags': ['SEO'], 'location': None, 'unknown': 1},
            {'title': 'Pricing', 'category': 'Sales', 'date': '2030-05-02', 'capacity': 30},
        ])

        self.assertEqual(created, 2)
        session = ConferenceSession.objects.get(title='SEO')
        self.assertEqual(session.date, date(2030, 5, 1))
        self.assertEqual(session.location, '')

    def test_import_rejects_invalid_records(self):
        """Test invalid records abort the import."""
        with self.assertRaises(ValueError):
            services.import_sessions([{'title': 'No date', 'category': 'Sales'}])
        with self.assertRaises(ValueError):
            services.import_sessions([{'title': 'Bad', 'category': 'Sales', 'date': '2030-05-01',
                                       'capacity': 5, 'enrolled': 6}])
        self.assertEqual(ConferenceSession.objects.count(), 0)

    def test_load_sessions_command(self):
        """Test the load_sessions management command."""
        path = self.write_json([
            {'title': 'Data 101', 'category': 'DataScience', 'date': '2030-06-01'},
        ])

        out = StringIO()
        call_command('load_sessions', path, stdout=out)

        self.assertIn('Successfully loaded 1 session(s)', out.getvalue())
        self.assertEqual(ConferenceSession.objects.count(), 1)

    def test_load_sessions_command_requires_array(self):
        """Test non-array files are rejected."""
        path = self.write_json({'title': 'Not a list'})
        with self.assertRaises(CommandError):
            call_command('load_sessions', path, stdout=StringIO())


class RecommendationAPITests(APITestCase):
    """Test the recommendations endpoint."""

    def setUp(self):
        self.client = APIClient()
        self.session = ConferenceSession.objects.create(
            title='Digital Growth',
            description='Paid and organic channels',
            category='DigitalMarketing',
            tags=['Digital Marketing', 'SEO'],
            date=timezone.localdate() + timedelta(days=2),
            time='10:00 AM',
            duration='1.5 hours',
            location='Hall A',
            instructor='Sam Lee',
        )

    def test_recommendations(self):
        """Test response shape for a matching profile."""
        response = self.client.post('/api/recommendations/', {
            'industry': 'marketing',
            'focus': ['Digital Marketing'],
            'topK': 4
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['category'], 'DigitalMarketing')
        self.assertIn('requestId', response.data)

        item = response.data['items'][0]
        self.assertEqual(item['id'], self.session.id)
        self.assertEqual(item['room'], 'Hall A')
        self.assertEqual(item['instructor'], 'Sam Lee')
        self.assertEqual(item['tags'], ['Digital Marketing', 'SEO'])
        self.assertEqual(item['start'], self.session.start_datetime.isoformat().replace('+00:00', 'Z'))
        self.assertEqual(item['end'], self.session.end_datetime.isoformat().replace('+00:00', 'Z'))
        self.assertGreater(item['score'], 0.5)

        metadata = response.data['metadata']
        self.assertEqual(metadata['final_count'], 1)
        self.assertEqual(metadata['total_analyzed'], 1)
        self.assertEqual(metadata['top_candidates'], 1)
        self.assertEqual(metadata['category_used'], 'DigitalMarketing')
        self.assertFalse(metadata['llm_optimized'])

    def test_no_matches_has_message(self):
        """Test an empty result carries a message."""
        response = self.client.post('/api/recommendations/', {'industry': 'finance'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'], [])
        self.assertEqual(response.data['metadata']['final_count'], 0)
        self.assertIn('message', response.data['metadata'])

    def test_industry_required(self):
        """Test a missing industry is rejected."""
        response = self.client.post('/api/recommendations/', {'focus': ['seo']}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Industry is required')

    def test_invalid_time_preference(self):
        """Test a reversed time window is rejected."""
        response = self.client.post('/api/recommendations/', {
            'industry': 'marketing',
            'timePref': {'start': '2030-05-01T12:00:00Z', 'end': '2030-05-01T09:00:00Z'}
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class BookingAPITests(APITestCase):
    """Test booking, calendar and booking lookup endpoints."""

    def setUp(self):
        self.client = APIClient()
        day = timezone.localdate() + timedelta(days=4)
        self.first = ConferenceSession.objects.create(
            title='Negotiation', category='Sales', date=day, time='9:00 AM',
            duration='1 hour', capacity=30, enrolled=3, instructor='Kim'
        )
        self.second = ConferenceSession.objects.create(
            title='Closing', category='Sales', date=day, time='9:00 AM',
            duration='2 hours', capacity=30, enrolled=0
        )
        self.third = ConferenceSession.objects.create(
            title='Prospecting', category='Sales', date=day, time='1:00 PM',
            duration='1 hour', capacity=30, enrolled=0
        )

    def test_book_and_download_calendar(self):
        """Test booking then fetching the calendar file."""
        response = self.client.post('/api/book/', {
            'sessionIds': [self.first.id, self.third.id],
            'userDetails': {'user_id': 'u-9', 'email': 'u9@example.com'}
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'confirmed')
        self.assertEqual(response.data['sessionIds'], [self.first.id, self.third.id])
        self.assertEqual(response.data['missingSessionIds'], [])
        booking_id = response.data['bookingId']
        self.assertEqual(response.data['icsUrl'], f'/api/ics/{booking_id}/')

        calendar = self.client.get(f'/api/ics/{booking_id}/')
        self.assertEqual(calendar.status_code, status.HTTP_200_OK)
        self.assertTrue(calendar['Content-Type'].startswith('text/calendar'))
        self.assertIn(f'schedule-{booking_id}.ics', calendar['Content-Disposition'])

        content = calendar.content.decode('utf-8')
        self.assertEqual(ics_values(content, 'SUMMARY'), ['Negotiation', 'Prospecting'])
        booked_start = response.data['sessions'][0]['start'].replace('Z', '+00:00')
        self.assertEqual(
            parse_ics_datetime(ics_values(content, 'DTSTART')[0]),
            datetime.fromisoformat(booked_start)
        )

        bookings = self.client.get('/api/bookings/u-9/')
        self.assertEqual(bookings.status_code, status.HTTP_200_OK)
        self.assertEqual(len(bookings.data['bookings']), 2)

    def test_conflicting_booking(self):
        """Test a time conflict returns the colliding pair."""
        response = self.client.post('/api/book/', {
            'sessionIds': [self.first.id, self.second.id]
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['conflicts'], [[self.first.id, self.second.id]])
        self.assertEqual(Booking.objects.count(), 0)

    def test_booking_with_unknown_session(self):
        """Test unknown ids are reported next to the booked sessions."""
        response = self.client.post('/api/book/', {
            'sessionIds': [self.third.id, 999999]
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sessionIds'], [self.third.id])
        self.assertEqual(response.data['missingSessionIds'], [999999])

        response = self.client.post('/api/book/', {'sessionIds': [999999]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_session_ids_required(self):
        """Test an empty selection is rejected."""
        response = self.client.post('/api/book/', {'sessionIds': []}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Session IDs are required')

    def test_unknown_booking_calendar(self):
        """Test downloading the calendar of an unknown booking."""
        response = self.client.get('/api/ics/00000000-0000-4000-8000-000000000000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Booking not found')

    def test_health(self):
        """Test the health check."""
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'healthy')
