from typing import Any, Iterable, Mapping, Set


def visible_providers(
    role: str,
    user_id: Any,
    assignment_index: Mapping[Any, Iterable[Any]],
    all_provider_ids: Iterable[Any] = (),
) -> Set[Any]:
    """
    Which doctors' queues and appointments an operator may see.

    Admins see every provider in ``all_provider_ids``. Doctors and assistants
    see what ``assignment_index`` lists for their user id (a doctor's own
    provider record, an assistant's assigned doctors). Missing assignments
    resolve to an empty set, not an error.
    """
    if role == "admin":
        return set(all_provider_ids)
    if role in ("doctor", "assistant"):
        return set(assignment_index.get(user_id) or ())
    return set()
