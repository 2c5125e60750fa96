"""Built-in plant safety questionnaire used when the backend template fails.

The structure is fixed so a session is never blocked by a template outage.
Auto-source fields are marked so classification values still apply.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from questionnaire_engine.models.field_kind import FieldKind
from questionnaire_engine.models.template import FieldDefinition, FieldOption, StepDefinition, Template

_YES_NO = (("yes", "Yes"), ("no", "No"))
_YES_NO_NA = (("yes", "Yes"), ("no", "No"), ("na", "N/A"))


def _choice(name: str, label: str, options: Sequence[Tuple[str, str]] = _YES_NO, auto: bool = False) -> FieldDefinition:
    return FieldDefinition(
        name=name,
        label=label,
        kind=FieldKind.SINGLE_CHOICE,
        auto_source=auto,
        options=tuple(FieldOption(value=v, label=lbl) for v, lbl in options),
    )


def _text(name: str, label: str, placeholder: str | None = None, long: bool = True, auto: bool = False) -> FieldDefinition:
    return FieldDefinition(
        name=name,
        label=label,
        kind=FieldKind.LONG_TEXT if long else FieldKind.TEXT,
        auto_source=auto,
        placeholder=placeholder,
    )


def _steps() -> List[StepDefinition]:
    return [
        StepDefinition(
            title="General",
            description="General information about MSDS availability and completeness",
            fields=(
                _choice("msds_available", "Is 16 Section MSDS of the raw material available?"),
                _text("missing_info", "Which information in any one of the 16 sections is not available in full?",
                      "Describe missing information"),
                _choice("sourcing_asked", "Has the identified missing / more information required from the "
                        "supplier asked thru Sourcing?", _YES_NO_NA),
                _choice("cas_available", "Is CAS number of the raw material based on the pure substance available?"),
                _choice("mixture_ingredients", "For mixtures, are ingredients of mixture available?"),
                _choice("composition_percentage", "Is % age composition substances in the mixture available?"),
                _choice("total_percentage_1", "Is the total %age of all substances in the mixture equal to 100?"),
                _text("total_percentage", "If not what is the % of substances not available?",
                      "Provide details about percentage composition"),
            ),
        ),
        StepDefinition(
            title="Physical",
            description="Physical properties and handling requirements",
            fields=(
                _choice("is_corrosive", "Is the material corrosive?", auto=True),
                _choice("corrosive_storage", "Does the plant have acid and alkali proof storage facilities to "
                        "store a corrosive raw material?", _YES_NO_NA),
                _choice("highly_toxic", "Is the material highly toxic?", auto=True),
                _choice("toxic_powder_handling", "Does the plant have facilities to handle fine powder of highly "
                        "toxic raw material?", _YES_NO_NA),
                _choice("crushing_facilities", "Does the plant have facilities to crush the stone like solid "
                        "raw material?", _YES_NO_NA),
                _choice("heating_facilities", "Does the plant have facilities to heat/melt the raw material if "
                        "required for charging the same in a batch?", _YES_NO_NA),
                _choice("paste_preparation", "Does the plant have facilities to prepare paste of raw material if "
                        "required for charging the same in a batch?", _YES_NO_NA),
            ),
        ),
        StepDefinition(
            title="Flammability and Explosivity",
            description="Flammability, explosivity and fire safety measures",
            fields=(
                _choice("flash_point_65", "Is Flash point of the raw material given and less than or equal to "
                        "65 degree C?", _YES_NO_NA, auto=True),
                _choice("petroleum_class", "Is the raw material to be categorised as Class C / Class B / Class A "
                        "substance as per Petroleum Act / Rules?",
                        (("class_a", "Class A"), ("class_b", "Class B"), ("class_c", "Class C"), ("na", "N/A")),
                        auto=True),
                _choice("storage_license", "Does all the plants have the capacity and license to store the raw "
                        "material?"),
                _text("ccoe_license", "If no, has the plant applied for CCoE license and by when expected to "
                      "receive the license?", "Provide details about CCoE license application"),
                _choice("flash_point_21", "Is Flash point of the raw material given is less than 21 degree C?",
                        _YES_NO_NA, auto=True),
                _choice("flammable_infrastructure", "If yes, does plant have infrastructure to comply State "
                        "Factories Rule for handling 'Flammable liquids'?", _YES_NO_NA),
            ),
        ),
        StepDefinition(
            title="Toxicity",
            description="Toxicity assessment and exposure control",
            fields=(
                _choice("ld50_oral", "Is LD 50 (oral) value available and higher than the threshold limit of "
                        "200 mg/Kg BW?", _YES_NO_NA, auto=True),
                _choice("ld50_dermal", "Is LD 50 (Dermal) value available and higher than 1000 mg/Kg BW?",
                        _YES_NO_NA, auto=True),
                _choice("lc50_inhalation", "Is LC50 Inhalation value available and higher than 10 mg/L?",
                        _YES_NO_NA, auto=True),
                _text("exposure_minimization", "If no, in any of the above three cases (where available) then "
                      "does the plant have facilities and /or procedure to minimise the exposure of workman?",
                      "Describe exposure minimization procedures"),
                _choice("carcinogenic", "Is the RM a suspect Carcinogenic?", _YES_NO_NA, auto=True),
                _text("carcinogenic_control", "If yes, plant has adequate facilities and /or procedure to "
                      "minimise the exposure of workman?", "Describe carcinogenic exposure control measures"),
            ),
        ),
        StepDefinition(
            title="Process Safety Management",
            description="Process safety management thresholds",
            fields=(
                _text("psm_tier1_outdoor", "PSM Tier I Outdoor - Threshold quantity (kgs)", long=False, auto=True),
                _text("psm_tier1_indoor", "PSM Tier I Indoor - Threshold quantity (kgs)", long=False, auto=True),
                _text("psm_tier2_outdoor", "PSM Tier II Outdoor - Threshold quantity (kgs)", long=False, auto=True),
                _text("psm_tier2_indoor", "PSM Tier II Indoor - Threshold quantity (kgs)", long=False, auto=True),
            ),
        ),
        StepDefinition(
            title="Storage and Handling",
            description="Storage and handling procedures",
            fields=(
                _text("storage_conditions_stores", "Are any storage conditions required and available in the "
                      "plant stores?", "Describe storage conditions in plant stores"),
                _text("storage_conditions_floor", "Are any storage conditions required and available in the "
                      "shop floor?", "Describe storage conditions on shop floor"),
                _choice("closed_loop_required", "Does it require closed loop handling system during charging?"),
                _choice("work_permit_available", "Does the plant have required Work permit and /or WI/SOP to "
                        "handle the raw material adequately?"),
                _text("procedures_details", "If, yes specify the procedures",
                      "Specify the procedures and work permits"),
            ),
        ),
        StepDefinition(
            title="PPE",
            description="Personal protective equipment requirements",
            fields=(
                _text("recommended_ppe", "Recommended specific PPEs based on MSDS", auto=True),
                _choice("ppe_in_use", "Are recommended PPE as per MSDS to handle the RM is already in use at "
                        "the plants?", (("yes", "Yes"), ("no", "No"), ("partial", "Partially"))),
                _text("ppe_procurement_date", "If no, by when the plant can procure the require PPE?",
                      "Enter expected procurement date", long=False),
            ),
        ),
        StepDefinition(
            title="First Aid",
            description="First aid measures and emergency response",
            fields=(
                _choice("is_poisonous", "Is the raw material poisonous as per the MSDS?", auto=True),
                _choice("antidote_specified", "Is the name of antidote required to counter the impact of the "
                        "material given in the MSDS?", _YES_NO_NA, auto=True),
                _choice("antidote_available", "Is the above specified antidote available in the plants?",
                        _YES_NO_NA),
                _text("antidote_source", "If the specified antidote is not available then what is source and "
                      "who will obtain the antidote in the plant?", "Describe antidote source and procurement plan"),
                _choice("first_aid_capability", "Does the plant has capability to provide the first aid "
                        "mentioned in the MSDS with the existing control measures?"),
            ),
        ),
        StepDefinition(
            title="Statutory",
            description="Statutory compliance and regulatory requirements",
            fields=(
                _choice("cmvr_listed", "Is the RM or any of its ingredient listed in Table 3 of Rule 137 (CMVR)",
                        auto=True),
                _choice("msihc_listed", "Is the RM or any of its ingredient listed in part II of Schedule I of "
                        "MSIHC Rule", auto=True),
                _choice("factories_act_listed", "Is the RM or any of its ingredients listed in Schedule II of "
                        "Factories Act", auto=True),
                _choice("permissible_concentration", "With the current infrastructure, is the concentration of "
                        "RM / ingredients listed in Schedule II of Factories Act within permissible "
                        "concentrations in the work area?", _YES_NO_NA),
                _text("monitoring_details", "Mention details of work area monitoring results and describe "
                      "infrastructure used for handling", "Provide monitoring details and infrastructure description"),
            ),
        ),
        StepDefinition(
            title="Others",
            description="Additional inputs and gap analysis",
            fields=(
                _text("plant_inputs_required", "Inputs required from plants based on the above assessment?",
                      "Describe inputs required from plants"),
                _text("gaps_identified", "Gaps identified vis-a-vis existing controls / protocols",
                      "Identify gaps in existing controls and protocols"),
                _text("additional_input_1", "Additional Input 1", "Additional input field 1"),
                _text("additional_input_2", "Additional Input 2", "Additional input field 2"),
            ),
        ),
    ]


def default_template() -> Template:
    return Template(steps=tuple(_steps()), source="fallback")


__all__ = ["default_template"]
