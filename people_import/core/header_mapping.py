"""Header Normalizer — maps raw spreadsheet headers to canonical field names.

Covers French, English, Russian, Arabic and Chinese headers. Lookup is
exact first, then lowercase, then lowercase with whitespace runs replaced
by underscores. Unmapped headers fall back to that last normalized form so
unexpected columns are preserved under their own name.
"""

import re
from types import MappingProxyType

HEADER_MAPPINGS = MappingProxyType({
    # French
    "matricule": "external_id",
    "identifiant": "external_id",
    "id_fr": "external_id",
    "nom": "last_name",
    "prenom": "first_name",
    "nom et prenom": "name",
    "nom_et_prenom": "name",
    "datedenaissance": "birth_date",
    "date de naissance": "birth_date",
    "date_de_naissance": "birth_date",
    "courriel": "email",
    "adresse courriel": "email",
    "adresse_courriel": "email",
    "telephone": "phone",
    "numero de telephone": "phone",
    "numero_de_telephone": "phone",
    "adresse": "address",
    "ville": "city",
    "etat": "state",
    "code_postal": "zip",
    "pays": "country",
    "entreprise": "company",
    "titre": "job_title",
    "departement": "department",
    "status_fr": "status",
    "statut": "status",

    # English
    "id": "external_id",
    "identifier": "external_id",
    "name": "name",
    "full name": "name",
    "fullname": "name",
    "full_name": "name",
    "first name": "first_name",
    "first_name": "first_name",
    "firstname": "first_name",
    "last name": "last_name",
    "last_name": "last_name",
    "lastname": "last_name",
    "email": "email",
    "email address": "email",
    "email_address": "email",
    "phone": "phone",
    "phone number": "phone",
    "phone_number": "phone",
    "address": "address",
    "city": "city",
    "state": "state",
    "zip": "zip",
    "zip code": "zip",
    "zip_code": "zip",
    "postal code": "zip",
    "postal_code": "zip",
    "country": "country",
    "company": "company",
    "job title": "job_title",
    "job_title": "job_title",
    "department": "department",
    "birth date": "birth_date",
    "birth_date": "birth_date",
    "date of birth": "birth_date",
    "date_of_birth": "birth_date",
    "status": "status",

    # English, cased variants
    "ID": "external_id",
    "Id": "external_id",
    "Name": "name",
    "Full Name": "name",
    "FullName": "name",
    "First Name": "first_name",
    "FirstName": "first_name",
    "Last Name": "last_name",
    "LastName": "last_name",
    "Email": "email",
    "Email Address": "email",
    "Phone": "phone",
    "Phone Number": "phone",
    "Address": "address",
    "City": "city",
    "State": "state",
    "Zip": "zip",
    "Zip Code": "zip",
    "Postal Code": "zip",
    "Country": "country",
    "Company": "company",
    "Job Title": "job_title",
    "Department": "department",
    "Birth Date": "birth_date",
    "BirthDate": "birth_date",
    "Date of Birth": "birth_date",
    "DOB": "birth_date",
    "Status": "status",

    # Russian
    "идентификатор": "external_id",
    "фамилия": "last_name",
    "имя": "first_name",
    "полное имя": "name",
    "полное_имя": "name",
    "дата рождения": "birth_date",
    "дата_рождения": "birth_date",
    "электронная почта": "email",
    "электронная_почта": "email",
    "телефон": "phone",
    "номер телефона": "phone",
    "номер_телефона": "phone",
    "адрес": "address",
    "город": "city",
    "область": "state",
    "почтовый индекс": "zip",
    "почтовый_индекс": "zip",
    "страна": "country",
    "компания": "company",
    "должность": "job_title",
    "отдел": "department",
    "статус": "status",

    # Arabic
    "رقم_التعريف": "external_id",
    "معرف": "external_id",
    "اسم_العائلة": "last_name",
    "الاسم_الأول": "first_name",
    "الاسم_الكامل": "name",
    "تاريخ_الميلاد": "birth_date",
    "البريد_الإلكتروني": "email",
    "هاتف": "phone",
    "رقم_الهاتف": "phone",
    "عنوان": "address",
    "مدينة": "city",
    "ولاية": "state",
    "الرمز_البريدي": "zip",
    "بلد": "country",
    "شركة": "company",
    "المسمى_الوظيفي": "job_title",
    "قسم": "department",
    "الحالة": "status",

    # Chinese
    "标识符": "external_id",
    "姓": "last_name",
    "名": "first_name",
    "全名": "name",
    "出生日期": "birth_date",
    "电子邮件": "email",
    "电话": "phone",
    "电话号码": "phone",
    "地址": "address",
    "城市": "city",
    "州": "state",
    "邮政编码": "zip",
    "国家": "country",
    "公司": "company",
    "职位": "job_title",
    "部门": "department",
    "状态": "status",
})

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_header(raw: str) -> str:
    """Map a trimmed header to its canonical field name. Never fails.

    Callers trim before lookup; an empty header maps to "".
    """
    if raw in HEADER_MAPPINGS:
        return HEADER_MAPPINGS[raw]

    lower = raw.lower()
    if lower in HEADER_MAPPINGS:
        return HEADER_MAPPINGS[lower]

    normalized = _WHITESPACE_RUN.sub("_", lower)
    return HEADER_MAPPINGS.get(normalized, normalized)
