"""
Record filtering.

Filter categories combine with AND; inside the tag category selected tags
combine with OR, so a record matches when it carries at least one of them.
"""


def status_matches(record, status):
    return status is None or record.status == status


def level_matches(record, level):
    return level is None or getattr(record, "level", None) == level


def tags_match(record, tag_set):
    """A record matches when tag_set is empty or shares at least one tag."""
    if not tag_set:
        return True
    return not record.tags.isdisjoint(tag_set)


def taxonomy_matches(record, taxonomy_id=None, goal_id=None, outcome_id=None):
    if taxonomy_id is not None and taxonomy_id not in record.taxonomy_refs:
        return False
    if goal_id is not None and getattr(record, "goal_id", None) != goal_id:
        return False
    if outcome_id is not None and getattr(record, "outcome_id", None) != outcome_id:
        return False
    return True


def text_matches(record, free_text, search_field):
    """Case-insensitive substring match against a single field."""
    needle = free_text.strip().casefold()
    if not needle:
        return True
    if search_field is None:
        return False
    value = getattr(record, search_field, None)
    if not isinstance(value, str):
        return False
    return needle in value.casefold()


class FilterPredicate:
    """
    Boolean predicate over a record and a FilterState.

    Args:
        search_field: name of the field free-text filtering looks at
            (e.g. "title_vi"); without one, a non-empty free_text
            matches nothing.
    """

    def __init__(self, search_field=None):
        self.search_field = search_field

    def matches(self, record, state):
        return (
            status_matches(record, state.status)
            and level_matches(record, state.level)
            and tags_match(record, state.tag_set)
            and taxonomy_matches(
                record,
                taxonomy_id=state.taxonomy_id,
                goal_id=state.goal_id,
                outcome_id=state.outcome_id,
            )
            and text_matches(record, state.free_text, self.search_field)
        )

    def __call__(self, record, state):
        return self.matches(record, state)

    def apply(self, records, state):
        """Return the matching records in their input order."""
        if state.is_empty:
            return list(records)
        return [record for record in records if self.matches(record, state)]
