"""Unit tests for clients, sharing and property assignment."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from assignment_service import (
    assign_property_to_client,
    assign_property_to_managers,
    assigned_properties,
    available_properties,
    bulk_assign_properties,
    bulk_remove_properties,
    client_counts_by_manager,
    find_client,
    generate_slug,
    remove_property_from_client,
    set_client_admins,
    set_property_managers,
    toggle_saved_property,
    track_client_access,
    update_client_pricing,
)
from auth import can_access_client, is_super_admin, visible_client_ids
from listing_agents import find_or_create_agent, link_property_to_agent
from models import Client, ClientShare, ListingAgent, Property, PropertyManager, PropertyManagerAssignment
from pricing import all_pricing_enabled


@pytest.fixture
def world(session):
    owner = PropertyManager(email='owner@example.com', name='Owner')
    helper = PropertyManager(email='helper@example.com', name='Helper')
    boss = PropertyManager(email='boss@example.com', name='Boss', role='super_admin')
    session.add_all([owner, helper, boss])
    session.flush()
    client = Client(manager_id=owner.id, name='Jane', slug='jane-abc123')
    session.add(client)
    session.flush()
    props = []
    for i, kw in enumerate([
        dict(show_monthly_rent=True, custom_monthly_rent=5000),
        dict(show_purchase_price=True, custom_purchase_price=900000),
        dict(scraped_for_client_id=client.id),
    ]):
        p = Property(address=f'{i} Main St', **kw)
        session.add(p)
        session.flush()
        props.append(p)
        assign_property_to_managers(session, p.id, [owner.id])
    return owner, helper, boss, client, props


# ═══════════════════════════════════════════════
# Clients
# ═══════════════════════════════════════════════

class TestClients:

    def test_find_by_id_and_slug(self, session, world):
        _, _, _, client, _ = world
        assert find_client(session, str(client.id)) is client
        assert find_client(session, 'jane-abc123') is client
        assert find_client(session, 'nope') is None
        assert find_client(session, '') is None

    def test_slug_shape(self):
        slug = generate_slug('Jane  Doe & Co.')
        assert slug.startswith('jane-doe-co-')
        assert len(slug.rsplit('-', 1)[1]) == 6

    def test_track_access(self, session, world):
        client = world[3]
        assert client.last_accessed is None
        track_client_access(session, client)
        assert client.last_accessed is not None


# ═══════════════════════════════════════════════
# Assignments
# ═══════════════════════════════════════════════

class TestAssignments:

    def test_defaults_follow_property_pricing(self, session, world):
        _, _, _, client, props = world
        a = assign_property_to_client(session, client.id, props[0].id)
        assert a.show_monthly_rent_to_client is True
        assert a.show_purchase_price_to_client is False
        assert a.position == 0

    def test_positions_append(self, session, world):
        _, _, _, client, props = world
        assign_property_to_client(session, client.id, props[0].id)
        a2 = assign_property_to_client(session, client.id, props[1].id)
        assert a2.position == 1
        assert [p.id for p, _ in assigned_properties(session, client.id)] == [props[0].id, props[1].id]

    def test_duplicate_rejected(self, session, world):
        _, _, _, client, props = world
        assign_property_to_client(session, client.id, props[0].id)
        with pytest.raises(ValueError, match='already assigned'):
            assign_property_to_client(session, client.id, props[0].id)

    def test_missing_property(self, session, world):
        with pytest.raises(ValueError, match='Property not found'):
            assign_property_to_client(session, world[3].id, 9999)

    def test_bulk_assign_skips_existing(self, session, world):
        _, _, _, client, props = world
        assign_property_to_client(session, client.id, props[0].id)
        n = bulk_assign_properties(session, client.id, [p.id for p in props] + [9999], all_pricing_enabled())
        assert n == 2

    def test_remove_and_bulk_remove(self, session, world):
        _, _, _, client, props = world
        bulk_assign_properties(session, client.id, [p.id for p in props])
        assert remove_property_from_client(session, client.id, props[0].id) is True
        assert remove_property_from_client(session, client.id, props[0].id) is False
        assert bulk_remove_properties(session, client.id, [props[1].id, props[2].id, 9999]) == 2

    def test_update_pricing(self, session, world):
        _, _, _, client, props = world
        assign_property_to_client(session, client.id, props[0].id)
        a = update_client_pricing(session, client.id, props[0].id, {'show_monthly_rent_to_client': False})
        assert a.show_monthly_rent_to_client is False
        with pytest.raises(ValueError):
            update_client_pricing(session, client.id, props[1].id, {})

    def test_available_modes(self, session, world):
        owner, _, _, client, props = world
        toggle_saved_property(session, owner.id, props[1].id)
        session.refresh(client)
        scraped = available_properties(session, client, owner.id, 'scraped')
        saved = available_properties(session, client, owner.id, 'saved')
        assert [p.id for p in scraped] == [props[2].id]
        assert [p.id for p in saved] == [props[1].id]

    def test_available_excludes_assigned_and_filters(self, session, world):
        owner, _, _, client, props = world
        assign_property_to_client(session, client.id, props[2].id)
        session.refresh(client)
        assert available_properties(session, client, owner.id, 'scraped') == []
        assert available_properties(session, client, owner.id, 'saved', q='Main') == []

    def test_toggle_saved(self, session, world):
        owner, _, _, _, props = world
        assert toggle_saved_property(session, owner.id, props[0].id) is True
        assert toggle_saved_property(session, owner.id, props[0].id) is False


class TestPropertyManagers:

    def test_assign_is_idempotent(self, session, world):
        owner, helper, _, _, props = world
        assert assign_property_to_managers(session, props[0].id, [owner.id, helper.id]) == 1
        assert assign_property_to_managers(session, props[0].id, [owner.id, helper.id]) == 0

    def test_set_replaces(self, session, world):
        owner, helper, _, _, props = world
        set_property_managers(session, props[0].id, [helper.id])
        ids = {link.manager_id for link in session.query(PropertyManagerAssignment).filter_by(property_id=props[0].id)}
        assert ids == {helper.id}


# ═══════════════════════════════════════════════
# Sharing and visibility
# ═══════════════════════════════════════════════

class TestSharing:

    def test_set_admins_adds_and_removes(self, session, world):
        owner, helper, boss, client, _ = world
        added, removed = set_client_admins(session, client.id, [helper.id, owner.id], boss.id)
        assert added == [helper.id] and removed == []
        assert session.query(ClientShare).filter_by(client_id=client.id).count() == 1

        added, removed = set_client_admins(session, client.id, [], boss.id)
        assert added == [] and removed == [helper.id]

    def test_unknown_client(self, session, world):
        with pytest.raises(LookupError):
            set_client_admins(session, 9999, [], world[2].id)

    def test_visibility(self, session, world):
        owner, helper, boss, client, _ = world
        assert visible_client_ids(session, owner.id, False) == {client.id}
        assert visible_client_ids(session, helper.id, False) == set()
        assert visible_client_ids(session, boss.id, True) is None

        set_client_admins(session, client.id, [helper.id], boss.id)
        assert can_access_client(session, client, helper.id, False)

    def test_counts(self, session, world):
        owner = world[0]
        assert client_counts_by_manager(session) == {owner.id: 1}


class TestRoles:

    def test_role_column(self, world):
        assert is_super_admin(world[2], [])
        assert not is_super_admin(world[0], [])

    def test_email_list_case_insensitive(self, world):
        assert is_super_admin(world[0], ['OWNER@example.com'])

    def test_none(self):
        assert not is_super_admin(None, [])


# ═══════════════════════════════════════════════
# Listing agents
# ═══════════════════════════════════════════════

class TestListingAgents:

    def test_phone_is_identity(self, session):
        a1 = find_or_create_agent(session, 'Pat', '305-555-0101')
        a2 = find_or_create_agent(session, 'Patricia', '305-555-0101', email='pat@x.com', broker_name='Ocean')
        assert a1 == a2
        agent = session.get(ListingAgent, a1)
        assert agent.name == 'Pat'
        assert agent.email == 'pat@x.com' and agent.broker_name == 'Ocean'

    def test_requires_name_and_phone(self, session):
        assert find_or_create_agent(session, 'Pat', '') is None
        assert find_or_create_agent(session, '', '305') is None

    def test_existing_info_kept(self, session):
        aid = find_or_create_agent(session, 'Pat', '1', email='pat@x.com')
        find_or_create_agent(session, 'Pat', '1')
        assert session.get(ListingAgent, aid).email == 'pat@x.com'

    def test_link(self, session):
        p = Property(address='x')
        session.add(p)
        session.flush()
        aid = find_or_create_agent(session, 'Pat', '1')
        assert link_property_to_agent(session, p.id, aid) is True
        assert p.listing_agent_id == aid
        assert link_property_to_agent(session, 9999, aid) is False
