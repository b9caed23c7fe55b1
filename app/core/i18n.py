"""
Localized user-facing messages for the RSVP flow
"""

from enum import Enum
from typing import Any, Dict


class Language(str, Enum):
    ENGLISH = "en"
    FRENCH = "fr"
    ITALIAN = "it"

    @classmethod
    def from_code(cls, code: str | None) -> "Language":
        """Unknown or missing codes fall back to English"""
        code = (code or "").strip().lower()[:2]
        for language in cls:
            if language.value == code:
                return language
        return cls.ENGLISH


MESSAGES: Dict[Language, Dict[str, str]] = {
    Language.ENGLISH: {
        "rsvp.success": "Thank you! Your RSVP has been saved.",
        "rsvp.success_refresh": "The page will reload in {seconds} seconds.",
        "rsvp.error_generic": "An error occurred. Please try again later.",
        "rsvp.error_loading": "Error loading RSVP",
        "rsvp.error_code_invalid": "Invitation code not found. Please check your code and try again.",
        "rsvp.error_network": "Network error. Please check your connection and try again.",
        "rsvp.error_server": "The server could not process the request. Please try again later.",
        "rsvp.error_not_found": "This guest no longer exists. Please reload the page.",
        "rsvp.error_parse": "Unexpected response from the server. Please try again later.",
        "rsvp.error_validation": "Please check the form and try again.",
        "rsvp.error_empty_names": "Please fill in all guest names before submitting.",
        "rsvp.error_no_locations": "Please select at least one location for each guest.",
        "rsvp.error_location_not_invited": "This location is not part of your invitation.",
        "rsvp.error_local_storage": "Your draft could not be saved on this device.",
        "rsvp.error_saving_guest": "Error saving guest \"{name}\". Please try again.",
        "rsvp.error_party_size": "Your guests were saved, but the party size could not be updated. Please try again.",
        "rsvp.error_notes": "Your guests were saved, but the notes could not be updated. Please try again.",
        "rsvp.error_deleting_guest": "Could not remove guest \"{name}\". Please try again.",
        "rsvp.error_autosave": "Changes to \"{name}\" could not be saved. Please try again.",
        "rsvp.error_busy": "Your RSVP is being saved. Please wait.",
        "rsvp.error_unknown_guest": "Guest not found",
    },
    Language.FRENCH: {
        "rsvp.success": "Merci! Votre RSVP a été enregistré.",
        "rsvp.success_refresh": "La page se rechargera dans {seconds} secondes.",
        "rsvp.error_generic": "Une erreur s'est produite. Veuillez réessayer plus tard.",
        "rsvp.error_loading": "Erreur lors du chargement du RSVP",
        "rsvp.error_code_invalid": "Code d'invitation introuvable. Veuillez vérifier votre code et réessayer.",
        "rsvp.error_network": "Erreur réseau. Veuillez vérifier votre connexion et réessayer.",
        "rsvp.error_empty_names": "Veuillez remplir les noms de tous les invités avant de soumettre.",
        "rsvp.error_no_locations": "Veuillez sélectionner au moins un lieu pour chaque invité.",
        "rsvp.error_saving_guest": "Erreur lors de l'enregistrement de l'invité « {name} ». Veuillez réessayer.",
        "rsvp.error_deleting_guest": "Impossible de supprimer l'invité « {name} ». Veuillez réessayer.",
        "rsvp.error_autosave": "Les modifications de « {name} » n'ont pas pu être enregistrées.",
        "rsvp.error_unknown_guest": "Invité introuvable",
    },
    Language.ITALIAN: {
        "rsvp.success": "Grazie! Il tuo RSVP è stato salvato.",
        "rsvp.success_refresh": "La pagina verrà ricaricata tra {seconds} secondi.",
        "rsvp.error_generic": "Si è verificato un errore. Riprova più tardi.",
        "rsvp.error_loading": "Errore nel caricamento del RSVP",
        "rsvp.error_code_invalid": "Codice invito non trovato. Controlla il tuo codice e riprova.",
        "rsvp.error_network": "Errore di rete. Controlla la tua connessione e riprova.",
        "rsvp.error_empty_names": "Compila i nomi di tutti gli ospiti prima di inviare.",
        "rsvp.error_no_locations": "Seleziona almeno una location per ogni ospite.",
        "rsvp.error_saving_guest": "Errore nel salvataggio dell'ospite \"{name}\". Riprova.",
        "rsvp.error_deleting_guest": "Impossibile rimuovere l'ospite \"{name}\". Riprova.",
        "rsvp.error_autosave": "Le modifiche a \"{name}\" non sono state salvate.",
        "rsvp.error_unknown_guest": "Ospite non trovato",
    },
}


def translate(key: str, language: Language | str = Language.ENGLISH, **params: Any) -> str:
    """Look up ``key`` in ``language``, falling back to English and then to the key itself"""
    if not isinstance(language, Language):
        language = Language.from_code(language)
    template = MESSAGES[language].get(key) or MESSAGES[Language.ENGLISH].get(key) or key
    try:
        return template.format(**params)
    except (KeyError, IndexError):
        return template
