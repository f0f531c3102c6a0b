import typing

from hospital_training.models.module_models import ModuleModel, QuestionModel
from hospital_training.utils.base_types import ModuleId, QuestionId

PASSING_SCORE = 90

# Modules named directly by the role-based dashboard rules
PATIENTS_RIGHTS_MODULE_ID = ModuleId("m_qa_1")
HAND_HYGIENE_MODULE_ID = ModuleId("m1")
IPSG_MODULE_ID = ModuleId("m_ps_2")
RISK_MANAGEMENT_MODULE_ID = ModuleId("m_ps_1")
INFECTION_CONTROL_SECTION = "B. Infection Prevention and Control"

_THUMBNAIL_BASE = "https://images.unsplash.com"


def _question(question_id: str, text: str, options: list[str], correct_answer_index: int) -> QuestionModel:
    return QuestionModel(
        id=QuestionId(question_id),
        text=text,
        options=options,
        correctAnswerIndex=correct_answer_index,
    )


FALLBACK_QUESTIONS: list[QuestionModel] = [
    _question(
        "fb1",
        "Why is adherence to quality assurance protocols critical in a hospital setting?",
        [
            "To increase administrative paperwork",
            "To ensure patient safety and minimize risk",
            "To speed up patient discharge indiscriminately",
            "To reduce the number of staff needed",
        ],
        1,
    ),
    _question(
        "fb2",
        "What should a staff member do first after witnessing a near-miss incident?",
        [
            "Ignore it since no harm occurred",
            "Discuss it only with close colleagues",
            "Report it through the hospital's incident reporting system",
            "Wait for the next quarterly audit",
        ],
        2,
    ),
    _question(
        "fb3",
        "Which practice is the single most effective way to prevent healthcare-associated infections?",
        [
            "Hand hygiene",
            "Wearing a lab coat",
            "Routine antibiotic use",
            "Limiting patient visitors",
        ],
        0,
    ),
]


MODULES: list[ModuleModel] = [
    # SECTION A
    ModuleModel(
        id=PATIENTS_RIGHTS_MODULE_ID,
        section="A. Quality Assurance",
        title="Patient's Rights and Obligations",
        description=(
            "Understanding the fundamental rights of patients and their corresponding responsibilities "
            "within the healthcare facility to ensure mutual respect and quality care."
        ),
        thumbnailUrl=f"{_THUMBNAIL_BASE}/premium_photo-1682089159103-d09b46d1cce8?auto=format&fit=crop&w=800&q=80",
        duration="8 min",
        topics=["Patient Rights", "Consent", "Privacy", "Patient Responsibilities"],
        videoUrl="https://drive.google.com/file/d/1TVls_xjsGhdOhwtB_pT8IV32zTkGip1U/view?usp=sharing",
        questions=[
            _question(
                "q_m_qa_1_1",
                "Ano ang isang pangunahing obligasyon ng Pasyente tungkol sa kanyang impormasyong pangkalusugan?",
                [
                    "Itago ang mga nakaraang medikal na problema",
                    "Magbigay ng sapat, tumpak, at kumpletong impormasyon",
                    "Magbigay ng impormasyon kung hihilingin lamang",
                    "Ibigay ang impormasyon sa pamamagitan lamang ng sulat",
                ],
                1,
            ),
            _question(
                "q_m_qa_1_4",
                "Anong batas ang dapat sundin ng Ospital ng Makati upang panatilihin ang kumpidensyalidad ng "
                "impormasyon ng pasyente?",
                [
                    "Revised Penal Code",
                    "Anti-Detention Law",
                    "Data Privacy Act of 2012",
                    "Magna Carta of Patient's Rights",
                ],
                2,
            ),
            _question(
                "q_m_qa_1_6",
                "Kailan dapat humingi ng Informed Consent ang mga Healthcare providers mula sa mga pasyente "
                "o sa kanilang kinatawan?",
                [
                    "Bago magbayad ng deposit",
                    "Bago ang anumang medical procedure o paggamot",
                    "Pagkatapos ng paggagamot",
                    "Sa panahon lamang ng emerhensiya",
                ],
                1,
            ),
        ],
    ),
    ModuleModel(
        id=ModuleId("m_qa_dataprivacy"),
        section="A. Quality Assurance",
        title="Data Privacy in Healthcare",
        description=(
            "An overview of the Data Privacy Act of 2012 (Republic Act No. 10173) and its critical role "
            "in protecting patient information within the healthcare setting."
        ),
        thumbnailUrl=f"{_THUMBNAIL_BASE}/photo-1576091160550-2173dba999ef?auto=format&fit=crop&w=800&q=80",
        duration="7 min",
        topics=[
            "Data Privacy Act",
            "Republic Act No. 10173",
            "National Privacy Commission (NPC)",
            "Personal Information",
        ],
        videoUrl="https://drive.google.com/file/d/1vUDby-oS6CDyFfGhrLvDiEjvkQ2vJCT_/view?usp=drive_link",
        questions=[
            _question(
                "q_m_qa_dp_1",
                "Ano ang buong pangalan ng batas na kilala bilang Republic Act No. 10173?",
                [
                    "The Health Information Act of 2012",
                    "The National Security Act",
                    "The Data Privacy Act of 2012",
                    "The Data Protection and Compliance Act",
                ],
                2,
            ),
        ],
    ),
    # SECTION B
    ModuleModel(
        id=HAND_HYGIENE_MODULE_ID,
        section=INFECTION_CONTROL_SECTION,
        title="Hand Hygiene Practices",
        description=(
            "Guidelines and protocols for minimizing the risk of spreading infections within the hospital "
            "environment. Includes hand hygiene, PPE usage, and isolation precautions."
        ),
        thumbnailUrl=f"{_THUMBNAIL_BASE}/photo-1574482620811-1aa16ffe3c82?auto=format&fit=crop&w=800&q=80",
        duration="5 min",
        topics=["Hand Hygiene", "PPE", "Isolation Protocols", "Waste Disposal"],
        videoUrl="https://drive.google.com/file/d/1WlzIqgb8zGUQ3cCS9aKlz7jf3UGflmIa/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m2"),
        section=INFECTION_CONTROL_SECTION,
        title="Standard and Isolation Precautions",
        description=(
            "Comprehensive guide on standard precautions for all patient care and specific isolation "
            "protocols (Contact, Droplet, Airborne) to prevent transmission of infectious agents."
        ),
        thumbnailUrl=f"{_THUMBNAIL_BASE}/premium_photo-1681995326134-cdc947934015?auto=format&fit=crop&w=800&q=80",
        duration="12 min",
        topics=["Standard Precautions", "Transmission-Based Precautions", "PPE Selection"],
        videoUrl="https://drive.google.com/file/d/1pqynS_gOoSAxEfVx82103piBBlMepYhV/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m_ipc_safe_injection"),
        section=INFECTION_CONTROL_SECTION,
        title="Safe Injection Practices",
        description=(
            'Essential protocols for injection safety, including the "One Needle, One Syringe, Only One Time" '
            "rule, medication preparation, and proper sharps disposal."
        ),
        duration="6 min",
        topics=["Injection Safety", "Sharps Disposal", "Aseptic Technique"],
        videoUrl="https://drive.google.com/file/d/1afg1XhiClidWjklgJulX40aD3ia4CO30/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m_ipc_ppe"),
        section=INFECTION_CONTROL_SECTION,
        title="Personal Protective Equipment",
        description=(
            "Proper selection, donning, and doffing techniques for Personal Protective Equipment (PPE) to "
            "ensure healthcare worker and patient safety."
        ),
        duration="9 min",
        topics=["PPE Selection", "Donning and Doffing", "Hazard Protection"],
        videoUrl="https://drive.google.com/file/d/1NYQcoZZNnUnLF23vC73ui_WDHCyYp9vB/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m_ipc_cleaning"),
        section=INFECTION_CONTROL_SECTION,
        title="Cleaning, Disinfection, and Sterilization",
        description=(
            "Best practices for cleaning, disinfecting, and sterilizing medical equipment and environmental "
            "surfaces to prevent healthcare-associated infections."
        ),
        duration="10 min",
        topics=["Spaulding Classification", "Disinfection Levels", "Sterilization Methods", "Environmental Cleaning"],
        videoUrl="https://drive.google.com/file/d/10rc_b-gN7iYTVmKLDBFaM9rbfPmRL9Cl/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m_ipc_waste"),
        section=INFECTION_CONTROL_SECTION,
        title="Healthcare Waste Management",
        description=(
            "Guidelines on waste segregation, color coding, and disposal protocols to handle hazardous and "
            "non-hazardous hospital waste safely."
        ),
        duration="10 min",
        topics=["Waste Segregation", "Color Coding", "Hazardous Waste", "Sharps Disposal"],
        videoUrl="https://drive.google.com/file/d/1Lg1IZW4c1GYfrZ8cF9dw-hXA_W5Zwkb8/view?usp=drive_link",
    ),
    # SECTION C
    ModuleModel(
        id=RISK_MANAGEMENT_MODULE_ID,
        section="C. Patient Safety and Risk Management",
        title="Risk and Opportunities Management",
        description=(
            "Identifying, assessing, and mitigating clinical and non-clinical risks to improve patient "
            "safety outcomes and organizational resilience."
        ),
        duration="11 min",
        topics=["Risk Assessment", "Incident Reporting", "Mitigation Strategies"],
        videoUrl="https://drive.google.com/file/d/1tTvmBPBM5w4NKowf6EN5oxNPgrjaDQvl/view?usp=sharing",
    ),
    ModuleModel(
        id=IPSG_MODULE_ID,
        section="C. Patient Safety and Risk Management",
        title="International Patient Safety Goals",
        description=(
            "Overview of the IPSG standards designed to promote specific improvements in patient safety, "
            "highlighting problematic areas in health care."
        ),
        duration="15 min",
        topics=["IPSG 1-6", "Patient Identification", "Communication", "Medication Safety"],
        videoUrl="https://drive.google.com/file/d/1APNQ1jJdSNHwnZjE4Qr5KHdvzrVuG5Ao/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m_ps_high_alert"),
        section="C. Patient Safety and Risk Management",
        title="High-Alert Medications",
        description=(
            "Protocols for the safe storage, prescribing, and administration of high-alert medications to "
            "prevent serious patient harm."
        ),
        duration="10 min",
        topics=["High-Alert Medications", "Medication Safety", "Storage Protocols"],
        videoUrl="https://drive.google.com/file/d/18irpemN_A9wZuY-_2VMceHyZkCsg83fy/view?usp=drive_link",
    ),
    ModuleModel(
        id=ModuleId("m_ps_pedia_fall"),
        section="C. Patient Safety and Risk Management",
        title="Pediatric Fall Prevention and Management",
        description=(
            "Guidelines for preventing and managing falls in pediatric patients using the Humpty Dumpty "
            "Scale and proper risk assessment protocols."
        ),
        duration="10 min",
        topics=["Humpty Dumpty Scale", "Fall Risk Assessment", "Pediatric Safety", "Risk Management"],
        videoUrl="https://drive.google.com/file/d/1ivBR_H4D_agJTqITZ8A_GrgmPSaIcFi0/view?usp=drive_link",
    ),
    ModuleModel(
        id=ModuleId("m_ps_adult_fall"),
        section="C. Patient Safety and Risk Management",
        title="Adult Fall Prevention and Management",
        description=(
            "Guidelines for preventing and managing falls in adult patients using the Modified Morse Fall "
            "Risk Assessment tool."
        ),
        duration="10 min",
        topics=["Modified Morse Scale", "Fall Risk Assessment", "Adult Safety", "Risk Management"],
        videoUrl="https://drive.google.com/file/d/1m3eSq_BxMktFtz4fD90aAIfmRUgCN7mU/view?usp=sharing",
    ),
    ModuleModel(
        id=ModuleId("m_ps_error_abbrev"),
        section="C. Patient Safety and Risk Management",
        title="Error Prone Abbreviation",
        description=(
            "Guidelines on avoiding dangerous abbreviations in medical documentation to prevent medication "
            "errors and misinterpretations."
        ),
        duration="8 min",
        topics=["Medical Abbreviations", "Documentation Safety", "Medication Errors"],
        videoUrl="https://drive.google.com/file/d/1F286B7XrGEgI7nW14F7TYgY_G_tpWe6z/view?usp=drive_link",
    ),
    # SECTION D
    ModuleModel(
        id=ModuleId("m_qms_iso"),
        section="D. Quality Management System",
        title="ISO 9001 Standards",
        description=(
            "An introduction to the ISO 9001:2015 Quality Management System, focusing on customer "
            "satisfaction, process approach, and continuous improvement in healthcare."
        ),
        duration="12 min",
        topics=["ISO 9001:2015", "Quality Management", "Continuous Improvement", "PDCA Cycle"],
        videoUrl="https://www.youtube.com/watch?v=JpM2w546dAQ",
        questions=[
            _question(
                "q_m_qms_iso_1",
                "What is the primary focus of ISO 9001:2015?",
                ["Cost reduction", "Customer satisfaction", "Staff scheduling", "Building maintenance"],
                1,
            ),
            _question(
                "q_m_qms_iso_2",
                "Which cycle is fundamental to the ISO 9001 process approach?",
                ["Plan-Do-Check-Act (PDCA)", "Stop-Look-Listen", "Find-Fix-Forget", "Hire-Train-Retain"],
                0,
            ),
            _question(
                "q_m_qms_iso_3",
                "Who is responsible for the effectiveness of the Quality Management System?",
                ["Only the Quality Manager", "Top Management", "External Auditors", "The IT Department"],
                1,
            ),
            _question(
                "q_m_qms_iso_4",
                'What does "evidence-based decision making" imply in ISO 9001?',
                [
                    "Decisions based on gut feeling",
                    "Decisions based on data and analysis",
                    "Decisions based on seniority",
                    "Decisions based on budget only",
                ],
                1,
            ),
            _question(
                "q_m_qms_iso_5",
                "Which of the following is NOT a quality management principle?",
                ["Customer focus", "Leadership", "Rapid expansion", "Engagement of people"],
                2,
            ),
        ],
    ),
    ModuleModel(
        id=ModuleId("m_qms_rca"),
        section="D. Quality Management System",
        title="Root Cause Analysis",
        description=(
            "Techniques for identifying the underlying causes of problems or incidents to prevent "
            "recurrence, including the 5 Whys and Fishbone Diagram."
        ),
        duration="10 min",
        topics=["Root Cause Analysis", "5 Whys", "Fishbone Diagram", "Problem Solving"],
        videoUrl="https://drive.google.com/file/d/1_9Gc1IdsRcvaGjCHFPaptBopVOWcGLa-/view?usp=drive_link",
    ),
    ModuleModel(
        id=ModuleId("m_qms_car"),
        section="D. Quality Management System",
        title="Corrective Action Requests",
        description=(
            "The process of documenting, investigating, and resolving non-conformities through the formal "
            "Corrective Action Request (CAR) system."
        ),
        duration="9 min",
        topics=["Non-conformity", "CAR Process", "Verification", "Closure"],
        videoUrl="https://drive.google.com/file/d/1TgY5Ncvj11HE1movNpq_lQyJRVI5yPcg/view?usp=drive_link",
    ),
    # SECTION E
    ModuleModel(
        id=ModuleId("m_adv_ipc_vap"),
        section="E. Advanced Infection Prevention and Control",
        title="VAP Bundle",
        description=(
            "Evidence-based practices to prevent Ventilator-Associated Pneumonia, including head-of-bed "
            "elevation, oral care, and sedation management."
        ),
        duration="10 min",
        topics=["Ventilator-Associated Pneumonia", "Oral Care", "Sedation Vacation", "Head of Bed"],
        videoUrl="https://www.youtube.com/watch?v=Fj2FqKjRz1I",
        questions=[
            _question(
                "q_m_adv_ipc_vap_1",
                "What is the recommended head-of-bed elevation to prevent VAP?",
                ["0-10 degrees", "30-45 degrees", "90 degrees", "Flat"],
                1,
            ),
            _question(
                "q_m_adv_ipc_vap_2",
                "How often should oral care with chlorhexidine be performed?",
                ["Weekly", "Daily", "Every 2-4 hours (as per policy)", "Monthly"],
                2,
            ),
            _question(
                "q_m_adv_ipc_vap_3",
                'What is a "sedation vacation"?',
                [
                    "Sending the patient on a trip",
                    "Daily interruption of sedation to assess readiness to wean",
                    "Increasing sedation at night",
                    "Giving the staff a break",
                ],
                1,
            ),
        ],
    ),
    ModuleModel(
        id=ModuleId("m_adv_ipc_cauti"),
        section="E. Advanced Infection Prevention and Control",
        title="CAUTI Bundle",
        description=(
            "Protocols for preventing Catheter-Associated Urinary Tract Infections, focusing on aseptic "
            "insertion and timely removal."
        ),
        duration="8 min",
        topics=["CAUTI", "Aseptic Insertion", "Catheter Maintenance", "Timely Removal"],
        videoUrl="https://www.youtube.com/watch?v=5y2sQx8u4yI",
    ),
    ModuleModel(
        id=ModuleId("m_adv_ipc_clabsi"),
        section="E. Advanced Infection Prevention and Control",
        title="CLABSI Bundle",
        description=(
            "Best practices for Central Line-Associated Bloodstream Infection prevention, including maximal "
            "barrier precautions and site care."
        ),
        duration="10 min",
        topics=["CLABSI", "Central Line", "Maximal Barrier Precautions", "Chlorhexidine"],
        videoUrl="https://www.youtube.com/watch?v=M2T22rB3fA4",
    ),
]


def get_module(module_id: ModuleId, modules: typing.Optional[list[ModuleModel]] = None) -> typing.Optional[ModuleModel]:
    for module in modules if modules is not None else MODULES:
        if module.id == module_id:
            return module
    return None


def resolve_catalog(stored_modules: list[ModuleModel]) -> list[ModuleModel]:
    """
    The modules table is authoritative once it has been seeded; until then the static
    catalog above is served as-is.
    """
    if stored_modules:
        return stored_modules
    return [module.model_copy(deep=True) for module in MODULES]
