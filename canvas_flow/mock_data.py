"""Canned Dify payloads served when no API key is configured (demo mode)."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping

from .schemas import TaskName


PERSONA_DATA: Dict[str, Any] = {
    "personas": [
        {
            "id": 1,
            "description": "A health-conscious working mother in her 40s who also manages her family's wellbeing and wants an efficient routine despite a packed schedule.",
            "explicit_needs": "A simple health tracker that is easy to keep using",
            "implicit_needs": "Peace of mind from knowing how the whole family is doing",
        },
        {
            "id": 2,
            "description": "An office worker in his 30s recently diagnosed with high cholesterol; long hours leave his meals irregular.",
            "explicit_needs": "Practical guidance on improving cholesterol through diet",
            "implicit_needs": "Avoid future illness and stay healthy for a long time",
        },
        {
            "id": 3,
            "description": "A self-employed person in their 50s with several lifestyle-related health issues who is ready to commit to real change.",
            "explicit_needs": "A comprehensive health improvement programme",
            "implicit_needs": "Expert support and lasting motivation",
        },
        {
            "id": 4,
            "description": "A university student in their 20s who follows health trends closely and wants to prevent problems early.",
            "explicit_needs": "Knowledge and habits for preventive health care",
            "implicit_needs": "Standing out from peers and investing in the future",
        },
        {
            "id": 5,
            "description": "A retiree in their 60s with free time who wants to extend healthy life expectancy while keeping medical costs down.",
            "explicit_needs": "An age-appropriate health programme",
            "implicit_needs": "Lower medical bills and an independent life",
        },
        {
            "id": 6,
            "description": "A 35-year-old parent whose own health keeps slipping down the list while caring for young children.",
            "explicit_needs": "One place to manage the whole family's health",
            "implicit_needs": "Relief from the guilt of neglecting personal health",
        },
        {
            "id": 7,
            "description": "A 45-year-old salesperson who eats out often, rarely exercises and works under constant stress.",
            "explicit_needs": "Health routines that fit between client meetings",
            "implicit_needs": "Better performance at work and a longer career",
        },
        {
            "id": 8,
            "description": "A 28-year-old freelance designer who sits all day and keeps irregular hours.",
            "explicit_needs": "Health solutions designed for desk workers",
            "implicit_needs": "Sustainable creative output and a balanced way of working",
        },
        {
            "id": 9,
            "description": "A 52-year-old manager whose health is suffering from long hours and the stress of leading a team.",
            "explicit_needs": "Stress management and efficient health improvement",
            "implicit_needs": "Being a healthy role model for the team",
        },
        {
            "id": 10,
            "description": "A 38-year-old single parent with little time or money who wants to protect the health of both parent and child.",
            "explicit_needs": "Low-cost, effective health management",
            "implicit_needs": "Staying healthy for the child's future",
        },
    ]
}

BUSINESS_IDEA_DATA: Dict[str, Any] = {
    "business_ideas": [
        {
            "id": 1,
            "idea_text": "AI health app that analyses meal photos and proposes personalised meal plans for lowering cholesterol",
            "osborn_hint": "Combine existing health apps with nutrition analysis for a more precise, personal service",
        },
        {
            "id": 2,
            "idea_text": "Healthy meal delivery: dietitian-designed frozen meals that prevent lifestyle diseases, delivered on subscription",
            "osborn_hint": "Combine busy schedules with health awareness into an easy, sustainable solution",
        },
        {
            "id": 3,
            "idea_text": "Online health coaching with one-to-one ongoing support from dietitians and fitness trainers",
            "osborn_hint": "Use digital delivery to make expert services closer and cheaper",
        },
        {
            "id": 4,
            "idea_text": "Wearable-connected health platform that merges heart rate, steps and sleep into personalised advice",
            "osborn_hint": "Apply IoT and data analysis to build next-generation health care",
        },
        {
            "id": 5,
            "idea_text": "Workplace wellness programme offered as an employee benefit to improve health and reduce stress",
            "osborn_hint": "Adapt the service for B2B to secure stable revenue while improving public health",
        },
        {
            "id": 6,
            "idea_text": "Healthy ingredient boxes with recipes selected to improve cholesterol",
            "osborn_hint": "Remove cooking effort while guaranteeing the right nutrients",
        },
        {
            "id": 7,
            "idea_text": "Virtual check-up platform combining at-home tests, AI analysis and remote doctor consultations",
            "osborn_hint": "Ride the telemedicine trend to offer preventive care",
        },
        {
            "id": 8,
            "idea_text": "Gamified health app that turns healthy behaviour into quests and rewards",
            "osborn_hint": "Borrow from entertainment to dramatically raise retention",
        },
        {
            "id": 9,
            "idea_text": "Neighbourhood health community that improves wellbeing through shared local activities",
            "osborn_hint": "Combine social ties with health improvement for a sustainable social model",
        },
        {
            "id": 10,
            "idea_text": "Personal health data service that tracks long-term data and predicts future risks with AI",
            "osborn_hint": "Maximise the value of personal health data from a preventive-care angle",
        },
    ]
}

PRODUCT_NAME_DATA: Dict[str, Any] = {
    "product_names": [
        {
            "id": 1,
            "name": "HealthWise",
            "reason": "Combines Health and Wise to express smart, informed health management",
            "pros": "Memorable and works internationally",
            "cons": "May resemble existing health-care brands",
        },
        {
            "id": 2,
            "name": "NutriGuide",
            "reason": "A guide for nutrition, making the meal-management focus obvious",
            "pros": "Intuitive and sounds professional",
            "cons": "Feels nutrition-only rather than holistic",
        },
        {
            "id": 3,
            "name": "VitalCare",
            "reason": "Vital plus Care evokes an energetic, healthy life",
            "pros": "Positive and broad enough for many services",
            "cons": "Could be confused with clinics or elder care",
        },
        {
            "id": 4,
            "name": "WellnessIQ",
            "reason": "Wellness plus IQ signals intelligent health management",
            "pros": "Modern and hints at AI",
            "cons": "IQ may feel intimidating to some users",
        },
        {
            "id": 5,
            "name": "LifeBalance",
            "reason": "Expresses harmony in a healthy everyday life",
            "pros": "Friendly and easy to relate to work-life balance",
            "cons": "A common phrase used outside health care",
        },
        {
            "id": 6,
            "name": "SmartHealth",
            "reason": "Smart health management that highlights the technology",
            "pros": "Simple and signals innovation",
            "cons": "Strongly associated with smartphone apps",
        },
        {
            "id": 7,
            "name": "HealthNavigator",
            "reason": "A navigator that guides users through their health journey",
            "pros": "Conveys trust and guidance",
            "cons": "Long and harder to remember",
        },
        {
            "id": 8,
            "name": "FitLife",
            "reason": "A fit life that encourages an active lifestyle",
            "pros": "Short, catchy and energetic",
            "cons": "Sounds fitness-focused and hides the diet features",
        },
        {
            "id": 9,
            "name": "HealthyChoice",
            "reason": "Supports the healthy choices people make every day",
            "pros": "Encourages behaviour change",
            "cons": "Close to existing food brands",
        },
        {
            "id": 10,
            "name": "WellTrack",
            "reason": "Tracking wellness continuously over time",
            "pros": "Clearly communicates tracking",
            "cons": "Slightly technical and less approachable",
        },
    ]
}

CANVAS_DATA: Dict[str, Any] = {
    "problem": [
        "Lifestyle diseases such as high cholesterol are rising",
        "Busy people cannot find time for health management",
        "There is so much health information that people do not know where to start",
    ],
    "solution": [
        "An AI health app personalised to each user",
        "Automatic nutrition analysis from meal photos",
        "Ongoing support from qualified experts",
    ],
    "keyMetrics": [
        "Monthly active users",
        "Share of users reaching health goals",
        "Six-month retention rate",
    ],
    "uniqueValueProposition": [
        "Nutrition analysis from a single photo",
        "Advice tailored to each person's health",
        "Trustworthy content supervised by medical professionals",
    ],
    "unfairAdvantage": [
        "Proprietary image-recognition models",
        "Partnership network with medical institutions",
        "A health dataset accumulated over years",
    ],
    "channels": [
        "Mobile app stores",
        "Referrals from clinics",
        "Social media marketing",
    ],
    "customerSegments": [
        "Health-conscious working people aged 30 to 50",
        "People who need to prevent or improve lifestyle diseases",
        "Parents managing their family's health",
    ],
    "costStructure": [
        "AI development and maintenance",
        "Fees for experts",
        "App development and operations",
    ],
    "revenueStreams": [
        "Monthly subscriptions",
        "Premium feature upgrades",
        "Corporate wellness contracts",
    ],
}

_TEMPLATES: Dict[TaskName, Dict[str, Any]] = {
    TaskName.PERSONA: PERSONA_DATA,
    TaskName.BUSINESS_IDEA: BUSINESS_IDEA_DATA,
    TaskName.PRODUCT_NAME: PRODUCT_NAME_DATA,
    TaskName.CANVAS: CANVAS_DATA,
}

# Only personas are streamed record by record; other tasks arrive as one payload.
_RECORD_KEYS: Dict[TaskName, str] = {
    TaskName.PERSONA: "personas",
}


class MockDataGenerator:
    """Serve canned payloads keyed by task name."""

    @staticmethod
    def generate(task: str, inputs: Mapping[str, Any] | None = None) -> Dict[str, Any]:
        """Return a fresh copy of the payload for *task*; inputs are ignored."""

        try:
            template = _TEMPLATES[TaskName(task)]
        except ValueError:
            return {"error": "Unknown task"}
        return copy.deepcopy(template)

    @staticmethod
    def records(task: str) -> List[Dict[str, Any]]:
        """Split the payload into the units a demo stream emits one by one."""

        payload = MockDataGenerator.generate(task)
        if "error" in payload:
            return [payload]
        record_key = _RECORD_KEYS.get(TaskName(task))
        if record_key is None:
            return [payload]
        return payload[record_key]
