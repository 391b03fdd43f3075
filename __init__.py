"""
Cascade Forest

Tree ensembles and minority oversampling for imbalanced tabular
classification: a Gini split engine, CART trees, bagged random forests with
out-of-bag statistics, a cascaded random forest that retrains on the rows its
earlier stages found hard, and SMOTE / LNSMOTE resamplers on top of a
k-nearest-neighbour engine.
"""
