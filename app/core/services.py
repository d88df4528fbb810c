"""Structured payloads for the services embedded in chat replies.

Everything here is synchronous and total: any query, including an empty one,
produces a well-formed payload. The search data is static content; live
results come from the providers in ``app.core.websearch`` which fall back to
``prepare_search_data``.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List
from urllib.parse import quote

from app.core.classifier import AppointmentDetails

APPOINTMENT_TYPES = ["General Check-up", "Specialist Consultation", "Follow-up", "Vaccination"]
DOCTORS = ["Dr. Smith", "Dr. Johnson", "Dr. Williams", "Dr. Brown"]

DEMO_VIDEO_ID = "dQw4w9WgXcQ"
DEMO_VIDEO_THUMBNAIL = f"https://i.ytimg.com/vi/{DEMO_VIDEO_ID}/hqdefault.jpg"

_GENERIC_TOPIC = "general health"

DIABETES_CITATIONS = [
    "https://www.mayoclinic.org/diseases-conditions/diabetes/symptoms-causes/syc-20371444",
    "https://www.niddk.nih.gov/health-information/diabetes/overview/symptoms-causes",
    "https://www.cdc.gov/diabetes/basics/symptoms.html",
]

_DIABETES_PAYLOAD: Dict[str, Any] = {
    "title": "Diabetes Information",
    "summary": "Information about diabetes symptoms and management",
    "featuredInfo": {
        "title": "Common symptoms of diabetes include:",
        "content": [
            "Increased thirst and urination",
            "Extreme fatigue",
            "Blurry vision",
            "Cuts/bruises that are slow to heal",
            "Weight loss, even though you are eating more (type 1)",
            "Tingling, pain, or numbness in the hands/feet (type 2)",
        ],
        "source": "American Diabetes Association",
    },
    "results": [
        {
            "title": "Diabetes Symptoms: When to see a doctor | Mayo Clinic",
            "url": DIABETES_CITATIONS[0],
            "displayUrl": "www.mayoclinic.org › diseases-conditions › diabetes › symptoms-causes",
            "snippet": (
                "Diabetes symptoms vary depending on how much your blood sugar is elevated. "
                "Some people, especially those with prediabetes or type 2 diabetes, may not ..."
            ),
        },
        {
            "title": "Symptoms & Causes of Diabetes | NIDDK",
            "url": DIABETES_CITATIONS[1],
            "displayUrl": "www.niddk.nih.gov › health-information › diabetes",
            "snippet": (
                "What are the symptoms of diabetes? Symptoms of diabetes include increased thirst "
                "and urination, fatigue, and blurred vision. Some people with ..."
            ),
        },
        {
            "title": "Diabetes Symptoms | CDC",
            "url": DIABETES_CITATIONS[2],
            "displayUrl": "www.cdc.gov › diabetes › basics › symptoms",
            "snippet": (
                "Learn about diabetes symptoms such as frequent urination, increased thirst, and "
                "unexplained weight loss. Early detection and treatment can prevent ..."
            ),
        },
    ],
    "citations": DIABETES_CITATIONS,
}


def _topic(query: str) -> str:
    return (query or "").strip() or _GENERIC_TOPIC


def _display_path(topic: str) -> str:
    return re.sub(r"\s+", "+", topic)


def prepare_appointment_data(details: AppointmentDetails | None = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "appointmentTypes": list(APPOINTMENT_TYPES),
        "doctors": list(DOCTORS),
    }
    if details is not None:
        data["extractedDetails"] = details.to_dict()
    return data


def prepare_search_data(query: str) -> Dict[str, Any]:
    topic = _topic(query)
    if "diabetes" in topic.lower():
        payload = dict(_DIABETES_PAYLOAD)
        payload["featuredInfo"] = {
            **_DIABETES_PAYLOAD["featuredInfo"],
            "content": list(_DIABETES_PAYLOAD["featuredInfo"]["content"]),
        }
        payload["results"] = [dict(item) for item in _DIABETES_PAYLOAD["results"]]
        payload["citations"] = list(DIABETES_CITATIONS)
        return payload

    encoded = quote(topic, safe="")
    display = _display_path(topic)
    return {
        "title": topic,
        "summary": f"Information about {topic}",
        "results": [
            {
                "title": f"Medical Information about {topic} | MedlinePlus",
                "url": f"https://medlineplus.gov/search?query={encoded}",
                "displayUrl": f"medlineplus.gov › search › {display}",
                "snippet": (
                    f"Comprehensive medical information about {topic} including symptoms, "
                    "treatments, and prevention measures."
                ),
            },
            {
                "title": f"{topic} - Health Information | Mayo Clinic",
                "url": f"https://www.mayoclinic.org/search/search-results?q={encoded}",
                "displayUrl": f"www.mayoclinic.org › search › {display}",
                "snippet": f"Learn about the causes, symptoms, diagnosis & treatment of {topic} from the Mayo Clinic.",
            },
        ],
    }


def prepare_video_data(query: str) -> Dict[str, Any]:
    topic = _topic(query)
    return {
        "title": f"Managing {topic}: Healthy Living Tips",
        "videoId": DEMO_VIDEO_ID,
        "thumbnail": DEMO_VIDEO_THUMBNAIL,
        "duration": "6:42",
        "channel": f"{topic} Health Association",
        "views": "23K",
        "likes": "450",
        "description": (
            f"This video provides practical tips for managing {topic} through diet, exercise, and "
            "lifestyle changes. Learn about prevention, treatment options, and how to live a healthy life."
        ),
    }


def search_videos(query: str) -> Dict[str, List[Dict[str, Any]]]:
    topic = _topic(query)
    return {
        "videos": [
            {
                "title": f"Understanding {topic}",
                "videoId": DEMO_VIDEO_ID,
                "thumbnail": DEMO_VIDEO_THUMBNAIL,
                "channel": "Medical Channel",
                "duration": "5:42",
            }
        ]
    }
