"""
Weights Manager: CRUD, validation and templating for weight profiles.

Profiles are stored as documents in one collection of a DocumentStore.
Every persona has an undeletable default profile, created on demand from
its template; the general persona's default doubles as the system default
(id "default") used whenever no profile is named.

Key Design Decisions:
- Persona template weights are merged underneath supplied weights on
  creation, so a new profile only needs to state what it changes
- Export/import, duplication and test variants copy weights verbatim
  (no template merge) so the copies score exactly like the source
- Unknown signal names are kept and reported as warnings; hard errors
  (non-numeric weights, bad normalization, out-of-range threshold) raise
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Any, List, Optional, Union

from ..exceptions import NotFoundError, ValidationError
from ..storage import DocumentStore
from .personas import PERSONA_TEMPLATES, PERSONAS, get_persona_template
from .profiles import WeightProfile, NormalizeConfig

logger = logging.getLogger(__name__)

PROFILES_COLLECTION = "weight_profiles"
SYSTEM_DEFAULT_ID = "default"
EXPORT_VERSION = "1.0"

# Fields a profile update may not change
IMMUTABLE_FIELDS = {"id", "created_at", "created_by", "is_default"}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_profile_id(persona: str) -> str:
    """Document id of a persona's default profile."""
    return SYSTEM_DEFAULT_ID if persona == "general" else f"{SYSTEM_DEFAULT_ID}_{persona}"


class WeightsManager:
    """
    Manager for weight profiles over a DocumentStore.

    Attributes:
        store: DocumentStore holding the profiles
        collection: Collection name for profile documents
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str = PROFILES_COLLECTION,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.collection = collection
        self.clock = clock or utc_now
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self._defaults_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_profiles(self, persona: Optional[str] = None) -> List[WeightProfile]:
        """
        List profiles, defaults first then by name.

        Seeds the persona default profiles when the collection is empty.

        Args:
            persona: Only return profiles of this persona

        Returns:
            List of WeightProfile
        """
        docs = self.store.list(self.collection)
        if not docs:
            self.initialize_default_profiles()
            docs = self.store.list(self.collection)

        profiles = [WeightProfile.from_dict(d) for d in docs]
        if persona is not None:
            profiles = [p for p in profiles if p.persona == persona]
        return sorted(profiles, key=lambda p: (not p.is_default, p.name, p.id))

    def get_profile(self, profile_id: str) -> WeightProfile:
        """
        Get a profile by id.

        Raises:
            NotFoundError: If no profile has this id
        """
        doc = self.store.get(self.collection, profile_id)
        if doc is None:
            raise NotFoundError(f"Weight profile not found: {profile_id}")
        return WeightProfile.from_dict(doc)

    def get_default_profile_for_persona(self, persona: str) -> WeightProfile:
        """
        Default profile of a persona, created from its template on first use.

        Raises:
            ValidationError: If the persona has no template
        """
        if persona not in PERSONA_TEMPLATES:
            raise ValidationError(f"Unknown persona: {persona}")

        doc = self.store.get(self.collection, default_profile_id(persona))
        if doc is not None:
            return WeightProfile.from_dict(doc)

        with self._defaults_lock:
            doc = self.store.get(self.collection, default_profile_id(persona))
            if doc is not None:
                return WeightProfile.from_dict(doc)
            return self._create_default_profile(persona)

    def get_system_default(self) -> WeightProfile:
        """The system default profile (general persona)."""
        return self.get_default_profile_for_persona("general")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_profile(
        self,
        profile_data: Dict[str, Any],
        created_by: Optional[str] = None,
        merge_template: bool = True
    ) -> WeightProfile:
        """
        Create a new profile.

        Args:
            profile_data: Profile fields; name and persona are required
            created_by: Creator identifier
            merge_template: Merge the persona template underneath the
                supplied weights and settings

        Returns:
            The stored WeightProfile

        Raises:
            ValidationError: If required fields are missing or values are invalid
        """
        if not profile_data.get("name") or not profile_data.get("persona"):
            raise ValidationError("Name and persona are required")

        data = {k: v for k, v in profile_data.items() if k not in ("id", "created_at", "updated_at")}
        if merge_template:
            template = get_persona_template(data["persona"])
            data["weights"] = {**template["weights"], **(data.get("weights") or {})}
            data["normalize"] = {**template["normalize"], **(data.get("normalize") or {})}
            data.setdefault("top_n", template["top_n"])
            data.setdefault("threshold", template["threshold"])

        now = self.clock()
        profile = WeightProfile.from_dict({
            **data,
            "id": self.id_factory(),
            "is_default": False,
            "created_by": created_by,
            "created_at": now,
            "updated_at": now,
        })
        self._validate_and_store(profile)
        logger.info(f"Created weight profile {profile.id} ({profile.name})")
        return profile

    def update_profile(self, profile_id: str, updates: Dict[str, Any]) -> WeightProfile:
        """
        Update fields of an existing profile.

        Weights and normalize settings in updates replace the stored ones.

        Raises:
            NotFoundError: If the profile does not exist
            ValidationError: If the updated profile is invalid
        """
        current = self.get_profile(profile_id).to_dict()
        ignored = sorted(set(updates) & IMMUTABLE_FIELDS)
        if ignored:
            logger.warning(f"Ignoring immutable field(s) in update of {profile_id}: {ignored}")

        merged = {**current, **{k: v for k, v in updates.items() if k not in IMMUTABLE_FIELDS}}
        merged["updated_at"] = self.clock()
        profile = WeightProfile.from_dict(merged)
        self._validate_and_store(profile)
        logger.info(f"Updated weight profile {profile_id}")
        return profile

    def delete_profile(self, profile_id: str) -> None:
        """
        Delete a profile.

        Raises:
            NotFoundError: If the profile does not exist
            ValidationError: If the profile is a default profile
        """
        profile = self.get_profile(profile_id)
        if profile.is_default:
            raise ValidationError(f"Cannot delete default weight profile: {profile_id}")
        self.store.delete(self.collection, profile_id)
        logger.info(f"Deleted weight profile {profile_id}")

    def duplicate_profile(self, profile_id: str, new_name: str, created_by: Optional[str] = None) -> WeightProfile:
        """Copy a profile under a new name (never a default)."""
        original = self.get_profile(profile_id)
        data = original.to_dict()
        data.update({"name": new_name, "description": f"Copy of {original.name}"})
        return self.create_profile(data, created_by, merge_template=False)

    def initialize_default_profiles(self) -> List[WeightProfile]:
        """Create every persona's default profile that does not exist yet."""
        return [self.get_default_profile_for_persona(persona) for persona in PERSONAS]

    def _create_default_profile(self, persona: str) -> WeightProfile:
        template = PERSONA_TEMPLATES[persona]
        now = self.clock()
        profile = WeightProfile(
            id=default_profile_id(persona),
            name=template["name"],
            persona=persona,
            description=template["description"],
            weights=dict(template["weights"]),
            normalize=NormalizeConfig.from_dict(template["normalize"]),
            top_n=template["top_n"],
            threshold=template["threshold"],
            is_default=True,
            created_by="system",
            created_at=now,
            updated_at=now,
        )
        self._validate_and_store(profile)
        logger.info(f"Created default weight profile for persona: {persona}")
        return profile

    def _validate_and_store(self, profile: WeightProfile) -> None:
        for warning in profile.validate():
            logger.warning(f"Profile {profile.id}: {warning}")
        self.store.put(self.collection, profile.id, profile.to_dict())

    # ------------------------------------------------------------------
    # Validation, exchange and experiments
    # ------------------------------------------------------------------

    def validate_profile(self, profile: Union[WeightProfile, Dict[str, Any]]) -> List[str]:
        """
        Validate a profile without storing it.

        Args:
            profile: WeightProfile or profile dictionary

        Returns:
            List of warnings (empty when the profile is clean)

        Raises:
            ValidationError: If the profile has hard errors
        """
        if isinstance(profile, dict):
            profile = WeightProfile.from_dict({**profile, "id": profile.get("id") or "_unsaved"})
        return profile.validate()

    def export_profile(self, profile_id: str) -> Dict[str, Any]:
        """
        Export a profile for backup or sharing.

        Returns:
            Dict with version, exported_at and the profile settings
        """
        profile = self.get_profile(profile_id)
        return {
            "version": EXPORT_VERSION,
            "exported_at": self.clock().isoformat(),
            "profile": {
                "name": profile.name,
                "description": profile.description,
                "persona": profile.persona,
                "weights": profile.weight_snapshot(),
                "normalize": profile.normalize.to_dict(),
                "top_n": profile.top_n,
                "threshold": profile.threshold,
            },
        }

    def import_profile(self, import_data: Dict[str, Any], created_by: Optional[str] = None) -> WeightProfile:
        """
        Import an exported profile as a new, non-default profile.

        Raises:
            ValidationError: If the data is not in export format
        """
        if not isinstance(import_data, dict) or not isinstance(import_data.get("profile"), dict):
            raise ValidationError("Invalid import data format")
        if "version" not in import_data:
            raise ValidationError("Import data has no version")
        if str(import_data["version"]) != EXPORT_VERSION:
            logger.warning(f"Importing profile exported with version {import_data['version']}")

        profile_data = import_data["profile"]
        if not profile_data.get("name"):
            raise ValidationError("Imported profile has no name")
        return self.create_profile(dict(profile_data), created_by, merge_template=False)

    def generate_test_variants(
        self,
        base_id: str,
        variations: List[Dict[str, Any]],
        created_by: Optional[str] = None
    ) -> List[WeightProfile]:
        """
        Create A/B test variants of a profile.

        Args:
            base_id: Profile to vary
            variations: List of {"name": str, "adjustments": {signal: weight}};
                adjustments override the base weights

        Returns:
            The created variant profiles, in input order
        """
        base = self.get_profile(base_id)
        variants = []
        for variation in variations:
            if not variation.get("name"):
                raise ValidationError("Each variation needs a name")
            data = base.to_dict()
            data.update({
                "name": f"{base.name} - {variation['name']}",
                "description": f"A/B test variant: {variation['name']}",
                "weights": {**base.weights, **(variation.get("adjustments") or {})},
            })
            variants.append(self.create_profile(data, created_by, merge_template=False))

        logger.info(f"Generated {len(variants)} test variants of {base_id}")
        return variants
